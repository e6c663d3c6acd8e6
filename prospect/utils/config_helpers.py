from pathlib import Path
from typing import List, Union
from omegaconf import OmegaConf
from omegaconf.dictconfig import DictConfig


def merge_configs(config_paths: List[Union[str, Path]]) -> DictConfig:
    """
    Merge multiple YAML configuration files with precedence. Later configs override earlier ones. Useful for tuning selector lists or budgets for one run without editing the base config.

    Args:
        config_paths: List of paths to YAML config files. Later configs take precedence.

    Returns:
        DictConfig: Merged configuration object

    Raises:
        ValueError: If config_paths is empty

    Example:
        >>> config = merge_configs(["config/extraction.yaml", "config/slow_site.yaml"])
        >>> policy = load_policy("email", config)
    """
    if not config_paths:
        raise ValueError("config_paths is empty!")

    merged = OmegaConf.load(config_paths[0])

    # Lists (selectors, blocklists) are replaced wholesale, not concatenated
    for config_path in config_paths[1:]:
        config = OmegaConf.load(config_path)
        merged = OmegaConf.unsafe_merge(merged, config)

    return merged


def parse_overrides(pairs: List[str]) -> dict:
    """
    Turn ["key=value", ...] CLI pairs into a dict.

    Raises:
        ValueError: If a pair has no '='
    """
    parsed = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got '{pair}'")
        key, value = pair.split("=", 1)
        parsed[key.strip()] = value.strip()
    return parsed
