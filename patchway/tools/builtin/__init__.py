"""Built-in graph tools backed by a GraphStore."""

from patchway.tools.builtin.construction import (
    CreateEdgeTool,
    CreateNodeInstanceTool,
    CreateNodePrototypeTool,
    MoveNodeInstanceTool,
)
from patchway.tools.builtin.inspection import (
    GetActiveGraphTool,
    GetGraphInstancesTool,
    IdentifyPatternsTool,
    ListAvailableGraphsTool,
    SearchNodesTool,
    VerifyStateTool,
)

__all__ = [
    "CreateEdgeTool",
    "CreateNodeInstanceTool",
    "CreateNodePrototypeTool",
    "MoveNodeInstanceTool",
    "GetActiveGraphTool",
    "GetGraphInstancesTool",
    "IdentifyPatternsTool",
    "ListAvailableGraphsTool",
    "SearchNodesTool",
    "VerifyStateTool",
]
