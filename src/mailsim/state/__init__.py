"""World state for mailsim simulations."""

from .schema import (
    Archetype,
    Character,
    ChangeType,
    ConversationState,
    DocumentContext,
    Email,
    EmailAddress,
    EmailType,
    EventType,
    Folder,
    GenerationProvenance,
    Goal,
    GoalPriority,
    GoalStage,
    CLOSED_ORIGINS,
    OriginType,
    ProcessedDocument,
    Relationship,
    SimulatedEvent,
    Tension,
    TensionStatus,
    TensionType,
    Theme,
    Thread,
    TickMetrics,
    TickResult,
    VoiceBinding,
    VoiceProfile,
    WorldConfig,
    WorldState,
    WorldStateChange,
    generate_id,
)
from .store import load_world_file, save_world_file

__all__ = [
    # Schema
    "Archetype",
    "Character",
    "ChangeType",
    "ConversationState",
    "DocumentContext",
    "Email",
    "EmailAddress",
    "EmailType",
    "EventType",
    "Folder",
    "GenerationProvenance",
    "Goal",
    "GoalPriority",
    "GoalStage",
    "CLOSED_ORIGINS",
    "OriginType",
    "ProcessedDocument",
    "Relationship",
    "SimulatedEvent",
    "Tension",
    "TensionStatus",
    "TensionType",
    "Theme",
    "Thread",
    "TickMetrics",
    "TickResult",
    "VoiceBinding",
    "VoiceProfile",
    "WorldConfig",
    "WorldState",
    "WorldStateChange",
    "generate_id",
    # Store
    "load_world_file",
    "save_world_file",
]
