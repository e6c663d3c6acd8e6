"""
Extraction policies: per-use-case configuration of the polling extractor.

A policy bundles the data for one kind of extraction (selector priority
lists, busy indicators, terminal vocabulary, well-formedness rule, budget
and batching knobs). The policy itself has no control flow; it only builds
samplers, predicates and batch jobs for the generic machinery.
"""

import os
from dataclasses import dataclass, field, replace
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Tuple, Union
from urllib.parse import quote_plus

from dotenv import load_dotenv
from omegaconf import OmegaConf
from omegaconf.dictconfig import DictConfig

from prospect.contexts.extraction.batch import BatchJob, ExtractionSpec
from prospect.contexts.extraction.extractor import ExtractionBudget
from prospect.contexts.extraction.harvest import Harvester, HarvestSettings
from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.sampling import ExtractionError, SelectorSampler
from prospect.utils.text_processing import (
    looks_like_email,
    looks_like_job_title,
    looks_like_person_name,
    looks_like_website,
    normalize_website,
)

load_dotenv()
CONFIG_PATH = Path(os.getenv("CONFIG_PATH", "config"))


class PolicyConfigError(ExtractionError):
    pass


def _well_formed_check(section: DictConfig) -> Callable[[str], bool]:
    """Resolve a section's `check` name into a one-argument well-formedness test."""
    check = section.get("check")
    if check == "email":
        return looks_like_email
    if check == "job_title":
        return looks_like_job_title
    if check == "person_name":
        return partial(looks_like_person_name, blocked_substrings=tuple(section.get("blocked_substrings", [])))
    if check == "website":
        return partial(looks_like_website, excluded_domains=tuple(section.get("excluded_domains", [])))
    raise PolicyConfigError(f"Unknown well-formedness check '{check}'")


NORMALIZERS = {
    "website": normalize_website,
}


def _normalizer(section: DictConfig) -> Optional[Callable[[str], str]]:
    name = section.get("normalize")
    if name is None:
        return None
    if name not in NORMALIZERS:
        raise PolicyConfigError(f"Unknown normalizer '{name}'. Available normalizers: {list(NORMALIZERS)}")
    return NORMALIZERS[name]


@dataclass(frozen=True)
class ExtractionPolicy:
    name: str
    well_formed: Callable[[str], bool]
    selectors: Tuple[str, ...]
    budget: ExtractionBudget
    url_templates: Tuple[str, ...] = ()
    busy_selectors: Tuple[str, ...] = ()
    terminal_phrases: Tuple[str, ...] = ()
    terminal_selectors: Tuple[str, ...] = ()
    transient_markers: Tuple[str, ...] = ("loading", "searching", "processing")
    attribute: Optional[str] = None
    normalize: Optional[Callable[[str], str]] = None
    batch_size: int = 5
    inter_batch_delay_ms: int = 15_000
    harvest: HarvestSettings = field(default_factory=HarvestSettings)

    @classmethod
    def from_config(cls, name: str, section: DictConfig) -> "ExtractionPolicy":
        try:
            return cls(
                name=name,
                well_formed=_well_formed_check(section),
                selectors=tuple(section.selectors),
                budget=ExtractionBudget.from_config(section.budget),
                url_templates=tuple(section.get("url_templates", [])),
                busy_selectors=tuple(section.get("busy_selectors", [])),
                terminal_phrases=tuple(section.get("terminal_phrases", [])),
                terminal_selectors=tuple(section.get("terminal_selectors", [])),
                transient_markers=tuple(section.get("transient_markers", cls.transient_markers)),
                attribute=section.get("attribute"),
                normalize=_normalizer(section),
                batch_size=int(section.batch.batch_size),
                inter_batch_delay_ms=int(section.batch.inter_batch_delay_ms),
                harvest=HarvestSettings.from_config(section.get("harvest")),
            )
        except Exception as e:
            if isinstance(e, PolicyConfigError):
                raise
            raise PolicyConfigError(f"Malformed config for policy '{name}': {e}") from e

    def predicate(self) -> ValidityPredicate:
        return ValidityPredicate(self.well_formed, self.transient_markers, normalize=self.normalize)

    def sampler(self, page, item=None) -> SelectorSampler:
        """Build a sampler reading page. {item} in selectors is replaced by item."""
        selectors = self.selectors
        if item is not None:
            selectors = tuple(selector.replace("{item}", str(item)) for selector in selectors)

        return SelectorSampler(
            page,
            selectors=selectors,
            busy_selectors=self.busy_selectors,
            terminal_phrases=self.terminal_phrases,
            terminal_selectors=self.terminal_selectors,
            transient_markers=self.transient_markers,
            text_filter=self.well_formed,
            attribute=self.attribute,
        )

    def spec(self, page, item=None, release=None) -> ExtractionSpec:
        return ExtractionSpec(
            sampler=self.sampler(page, item),
            predicate=self.predicate(),
            budget=self.budget,
            release=release,
        )

    def harvester(self, page, item=None, max_values: Optional[int] = None, **kwargs) -> Harvester:
        """Build a Harvester collecting every accepted value on page (at most max_values)."""
        settings = self.harvest
        if max_values is not None:
            settings = replace(settings, max_values=max_values)

        label = f"{self.name}:{item}" if item else self.name
        return Harvester(
            self.sampler(page, item),
            self.predicate(),
            self.budget,
            settings,
            label=label,
            **kwargs,
        )

    def build_url(self, item, template_index: int = 0, **params) -> str:
        """
        Fill a URL template for one item.

        Raises:
            PolicyConfigError: If the policy has no such template or a placeholder has no value
        """
        if template_index >= len(self.url_templates):
            raise PolicyConfigError(f"Policy '{self.name}' has no URL template #{template_index}")

        values = {key: quote_plus(str(value)) for key, value in params.items()}
        values["item"] = quote_plus(str(item))
        try:
            return self.url_templates[template_index].format(**values)
        except KeyError as e:
            raise PolicyConfigError(
                f"URL template for '{self.name}' needs parameter {e}; pass it with --param"
            ) from e

    def batch_job(self, items, batch_size: Optional[int] = None) -> BatchJob:
        return BatchJob(
            items=items,
            batch_size=batch_size or self.batch_size,
            inter_batch_delay_ms=self.inter_batch_delay_ms,
        )


def load_extraction_config(config_path: Union[Path, str] = None) -> DictConfig:
    config_path = Path(config_path) if config_path else CONFIG_PATH / "extraction.yaml"
    if not config_path.exists():
        raise PolicyConfigError(f"Extraction config not found at {config_path}")
    return OmegaConf.load(config_path)


def available_policies(config: Optional[DictConfig] = None) -> list[str]:
    config = config if config is not None else load_extraction_config()
    return list(config.keys())


def load_policy(name: str, config: Optional[DictConfig] = None) -> ExtractionPolicy:
    """
    Build the named policy from the extraction config.

    Args:
        name: Section name in the config (e.g., "email", "people_name")
        config: Loaded config (default: CONFIG_PATH/extraction.yaml)

    Raises:
        PolicyConfigError: If the policy is unknown or its section is malformed
    """
    config = config if config is not None else load_extraction_config()
    if name not in config:
        raise PolicyConfigError(
            f"Policy '{name}' not in extraction config. Available policies: {list(config.keys())}"
        )
    return ExtractionPolicy.from_config(name, config[name])
