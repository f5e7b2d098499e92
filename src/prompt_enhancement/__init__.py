"""LLM-driven prompt enhancement: attributes, iterative optimization, critique."""

from .attributes import extract_attributes  # noqa: F401
from .critique import CritiqueAnalyzer, critique_negatives, critique_to_feedback  # noqa: F401
from .enhancement import PromptEnhancementAgent, build_iterative_feedback  # noqa: F401
from .errors import (  # noqa: F401
    AttributeExtractionError,
    EnhancementError,
    PromptGenerationError,
)
from .negatives import (  # noqa: F401
    build_negative_prompt,
    extract_negatives_from_critique,
    merge_negative_prompts,
)
from .schemas import (  # noqa: F401
    EnhancedPrompt,
    EnhancementRequest,
    EnhancementResult,
    ImageCritique,
    VisualAttributes,
)
