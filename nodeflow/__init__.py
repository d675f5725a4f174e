"""
nodeflow
========
A pure node-graph editing engine: typed ports, connection rules, cycle
policy and connection geometry for visual-programming editors.

Public API
----------
    from nodeflow.core import AddNode
    from nodeflow.server.state import EditorSession

    session = EditorSession.from_settings()
    result = session.dispatch(AddNode("Number", x=80, y=100))
"""

__version__ = "0.1.0"
