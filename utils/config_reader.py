# utils/config_reader.py

import yaml
import logging

logger = logging.getLogger(__name__)

# Top-level sections of the planner configuration file
CONFIG_SECTIONS = ('logging', 'kinematic_profile', 'planning', 'maps', 'scenario')


class ConfigReader:
    """
    Helper class to read the planner configuration from a YAML file.
    """
    def __init__(self, config_path):
        """
        Initializes the ConfigReader with the path to the configuration file.

        Args:
            config_path (str): The path to the YAML configuration file.
        """
        self.config_path = config_path
        logger.info(f"ConfigReader initialized with path: {self.config_path}")

    def load_config(self):
        """
        Loads and parses the YAML configuration file.

        Returns:
            dict or None: A dictionary containing the configuration, or None if loading fails.
                          Missing known sections are filled with empty dictionaries.
        """
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except FileNotFoundError:
            logger.error(f"Configuration file not found: {self.config_path}")
            return None
        except yaml.YAMLError as e:
            logger.error(f"Error parsing configuration file {self.config_path}: {e}")
            return None
        except OSError as e:
            logger.error(f"Could not read configuration file {self.config_path}: {e}")
            return None

        if config is None:
            config = {}
        if not isinstance(config, dict):
            logger.error(f"Configuration file {self.config_path} must contain a mapping, got {type(config).__name__}")
            return None

        for section in CONFIG_SECTIONS:
            if config.get(section) is None:
                logger.debug(f"Section '{section}' missing from {self.config_path}; using defaults.")
                config[section] = {}
        logger.info("Configuration loaded successfully.")
        return config

    @staticmethod
    def get_section(config, name):
        """
        Returns a configuration section as a dictionary.

        Args:
            config (dict): The loaded configuration.
            name (str): Section name, dotted for nested sections (e.g. 'planning.replan_trigger').

        Returns:
            dict: The section, or an empty dictionary if it is missing or not a mapping.
        """
        section = config
        for key in name.split('.'):
            section = section.get(key) if isinstance(section, dict) else None
            if section is None:
                return {}
        if not isinstance(section, dict):
            logger.warning(f"Configuration section '{name}' is not a mapping; ignoring it.")
            return {}
        return section
