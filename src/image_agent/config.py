"""Agent configuration: frozen defaults, presets and deep-merge of overrides."""
from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from providers.llm_client import LLMOptions
from providers.settings import DEFAULT_IMAGE_MODEL
from providers.storage import DEFAULT_OUTPUT_DIR, DEFAULT_PUBLIC_PREFIX


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid"
    )


class PromptTranslationConfig(_ConfigModel):
    use_templates: bool = Field(
        default=True, description="Prefix the subject with the per-use-case template phrase"
    )
    enhance_prompts: bool = Field(
        default=True, description="Append quality keywords and the mood phrase"
    )
    add_negative_prompts: bool = True
    min_quality_score: int = Field(default=60, ge=0, le=100)
    use_llm_enhancement: bool = False
    iterations: int = Field(default=3, ge=1, le=10)


class GenerationConfig(_ConfigModel):
    retry_on_failure: bool = True
    max_retries: int = Field(default=3, ge=0)
    enable_refinement: bool = True
    timeout: int = Field(default=120000, gt=0, description="Per-call timeout in milliseconds")
    base_delay: int = Field(default=1000, ge=0, description="First backoff delay in milliseconds")
    jitter: float = Field(default=0.0, ge=0.0, le=1.0)
    request_budget: Optional[int] = Field(
        default=None, gt=0, description="Overall milliseconds allowed for one generate() call"
    )


class FileManagementConfig(_ConfigModel):
    output_directory: str = DEFAULT_OUTPUT_DIR
    filename_pattern: str = "{slug}-{timestamp}"
    public_url_prefix: str = DEFAULT_PUBLIC_PREFIX


class LoggingConfig(_ConfigModel):
    verbose: bool = False
    log_intent_detection: bool = False
    log_prompt_translation: bool = False
    log_generation: bool = False


class ScoringConfig(_ConfigModel):
    """Heuristic constants for classification and early exit.

    These were picked by hand and have not been calibrated against outcomes.
    """

    use_case_keyword_boost: int = 30
    style_weight_multiplier: int = 10
    base_confidence: int = 50
    use_case_hit_bonus: int = 20
    style_hit_bonus: int = 15
    min_words_for_bonus: int = 5
    word_count_bonus: int = 10
    long_intent_words: int = 10
    long_intent_bonus: int = 5
    hint_bonus: int = 10
    early_exit_confidence: int = Field(default=90, ge=0, le=100)
    early_exit_min_iteration: int = Field(default=2, ge=1)
    feedback_target_confidence: int = Field(default=80, ge=0, le=100)


class AgentConfig(_ConfigModel):
    model: str = DEFAULT_IMAGE_MODEL
    prompt_translation: PromptTranslationConfig = Field(default_factory=PromptTranslationConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    file_management: FileManagementConfig = Field(default_factory=FileManagementConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    llm: LLMOptions = Field(default_factory=LLMOptions)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)


DEFAULT_CONFIG = AgentConfig()

PRESET_CONFIGS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "prompt_translation": {"enhance_prompts": False, "min_quality_score": 50},
        "generation": {
            "retry_on_failure": False,
            "max_retries": 1,
            "enable_refinement": False,
            "timeout": 60000,
        },
    },
    "quality": {
        "prompt_translation": {"min_quality_score": 80},
        "generation": {"timeout": 180000},
        "llm": {"timeout": 180000},
    },
    "debug": {
        "logging": {
            "verbose": True,
            "log_intent_detection": True,
            "log_prompt_translation": True,
            "log_generation": True,
        },
    },
}

ConfigOverrides = Union[AgentConfig, Mapping[str, Any], None]


def _normalize_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {to_snake(str(key)): _normalize_keys(item) for key, item in value.items()}
    return value


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_config(base: AgentConfig, overrides: ConfigOverrides = None) -> AgentConfig:
    """Return a new config with ``overrides`` merged section by section.

    Keys may be given in snake_case or camelCase. ``base`` is never modified.
    """

    if overrides is None:
        return base
    if isinstance(overrides, AgentConfig):
        overrides = overrides.model_dump(exclude_unset=True)
    merged = _deep_merge(base.model_dump(), _normalize_keys(overrides))
    return AgentConfig.model_validate(merged)


def create_config(preset: Optional[str] = None, overrides: ConfigOverrides = None) -> AgentConfig:
    config = DEFAULT_CONFIG
    if preset is not None:
        if preset not in PRESET_CONFIGS:
            raise ValueError(
                f"Unknown preset '{preset}'; expected one of {sorted(PRESET_CONFIGS)}"
            )
        config = merge_config(config, PRESET_CONFIGS[preset])
    return merge_config(config, overrides)


__all__ = [
    "AgentConfig",
    "DEFAULT_CONFIG",
    "FileManagementConfig",
    "GenerationConfig",
    "LoggingConfig",
    "PRESET_CONFIGS",
    "PromptTranslationConfig",
    "ScoringConfig",
    "create_config",
    "merge_config",
]
