"""Construction vertical configuration.

Builds the TrackerConfig from the environment, demonstrating how
verticals use the domain config pattern.
"""

from patterns.domain_config import TrackerConfig

# Process-wide configuration instance
config = TrackerConfig.from_env()
