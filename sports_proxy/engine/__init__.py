from sports_proxy.engine.models import (
    ConversationContext,
    EngineEvent,
    EngineEventType,
    ModelRequest,
    ModelResult,
    ModelToolCall,
    ToolCall,
    ToolResult,
    TurnRequest,
    TurnResponse,
)
from sports_proxy.engine.conversation import (
    ConversationStateTracker,
    ConversationStore,
    InMemoryConversationStore,
)
from sports_proxy.engine.llm import DemoMockModelClient, MockModelClient, ModelClient, OpenAIResponsesClient
from sports_proxy.engine.orchestrator import Orchestrator

__all__ = [
    "ConversationContext",
    "ConversationStateTracker",
    "ConversationStore",
    "DemoMockModelClient",
    "EngineEvent",
    "EngineEventType",
    "InMemoryConversationStore",
    "MockModelClient",
    "ModelClient",
    "ModelRequest",
    "ModelResult",
    "ModelToolCall",
    "OpenAIResponsesClient",
    "Orchestrator",
    "ToolCall",
    "ToolResult",
    "TurnRequest",
    "TurnResponse",
]
