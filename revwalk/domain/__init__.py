"""Domain layer package.

This package contains the walk's configuration model and pure logic:
- walk_config: revwalk.yaml dataclasses
- config_loader: YAML loading and schema validation
- code_pattern_matcher: glob filtering of changed paths
"""
