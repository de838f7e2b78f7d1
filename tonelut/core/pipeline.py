"""
pipeline - The processing pipeline for the tonelut project.

A pipeline is a YAML list of IOP steps, each naming a module under
`tonelut.iop` and the keyword parameters its class is built with:

    pipeline:
      - module: tonecurve
        params:
          control_points_x: [0.0, 0.25, 0.75, 1.0]
          control_points_y: [0.0, 0.15, 0.85, 1.0]
"""

import importlib
import logging
import os
import time
from typing import Any, Dict, Mapping, Union

import numpy as np
import yaml

from tonelut.core.datatypes import ConfigError, PipelineError

logger = logging.getLogger(__name__)

IOP_PACKAGE = "tonelut.iop"


def load_iop_module(module_name: str) -> type:
    """
    Dynamically loads an IOP module class from the iop package.

    It assumes the module file is named 'module_name.py' and the class
    is the CamelCase version of the module_name (e.g., 'tonecurve' -> 'Tonecurve').
    """
    module_path = f"{IOP_PACKAGE}.{module_name}"
    class_name = "".join(word.capitalize() for word in module_name.split('_'))
    try:
        imported_module = importlib.import_module(module_path)
        return getattr(imported_module, class_name)
    except (ImportError, AttributeError) as e:
        raise ConfigError(
            f"Could not load IOP module '{module_name}'. Please ensure "
            f"'{module_path}' exists and contains a class named '{class_name}'."
        ) from e


def load_config(config_path: Union[str, os.PathLike]) -> Dict[str, Any]:
    """ Instantiation from a yaml file. """
    with open(config_path, 'r', encoding='utf-8') as fp:
        config = yaml.safe_load(fp)
    if not isinstance(config, dict):
        raise ConfigError(f"Pipeline config '{config_path}' must be a mapping, got {type(config).__name__}")
    return config


def _pipeline_steps(config: Mapping[str, Any]) -> list:
    steps = config.get('pipeline')
    if not isinstance(steps, list):
        raise ConfigError("Pipeline config needs a 'pipeline' list of steps")
    for i, step in enumerate(steps):
        if not isinstance(step, dict) or 'module' not in step:
            raise ConfigError(f"Pipeline step {i + 1} must be a mapping with a 'module' key")
        if not isinstance(step.get('params', {}), dict):
            raise ConfigError(f"Pipeline step {i + 1} ('{step['module']}'): 'params' must be a mapping")
    return steps


def run_pipeline(config: Union[str, os.PathLike, Mapping[str, Any]], image_data: np.ndarray) -> np.ndarray:
    """
    Runs every enabled pipeline step on image_data and returns the result.

    Args:
        config: Path to a YAML config file, or the already-loaded mapping.
        image_data (np.ndarray): Float image normalized to [0, 1].
    """
    start_time = time.perf_counter()
    if not isinstance(config, Mapping):
        logger.info("Loading configuration from: %s", config)
        config = load_config(config)

    pipeline_steps = _pipeline_steps(config)

    logger.info("Executing processing pipeline...")
    for i, step in enumerate(pipeline_steps):
        module_name = step['module']
        params = step.get('params', {})
        if not step.get('enabled', True):
            logger.info("Step %d/%d: module '%s' disabled, skipping", i + 1, len(pipeline_steps), module_name)
            continue
        logger.info("Step %d/%d: Applying module '%s' with params %s",
                    i + 1, len(pipeline_steps), module_name, params)

        IopModule = load_iop_module(module_name)
        try:
            iop_instance = IopModule(**params)
            image_data = iop_instance.process(image_data)
        except (TypeError, ValueError, PipelineError) as e:
            raise PipelineError(f"Step {i + 1} ('{module_name}') failed: {e}") from e

    logger.info("Pipeline finished in %.2f seconds", time.perf_counter() - start_time)
    return image_data
