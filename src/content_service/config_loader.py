"""YAML project configuration loading and saving.

This module is the file-backed stand-in for the project database: it maps
project ids to RepositoryConfig records. Credentials are never stored in the
YAML file; each project names the environment variable holding its token
(loaded from .env via python-dotenv).

Configuration file structure:
    projects:
      blog:
        remote_url: "https://github.com/acme/blog.git"
        branch: "main"
        content_dir: "src/content/blog"
        committer_name: "Acme Bot"
        committer_email: "bot@acme.dev"
        credential_env: "BLOG_GIT_TOKEN"
"""

import os
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from src.git_integration.errors import ConfigError
from src.git_integration.models import RepositoryConfig, Secret


class ProjectConfigLoader:
    """Loads, validates and saves per-project repository configuration.

    Example:
        >>> configs = ProjectConfigLoader.load("projects.yaml")
        >>> configs["blog"].branch
        'main'
        >>> provider = ProjectConfigLoader.provider("projects.yaml")
        >>> provider("blog").remote_url
        'https://github.com/acme/blog.git'
    """

    REQUIRED_PROJECT_FIELDS = {'remote_url'}

    OPTIONAL_PROJECT_FIELDS = {
        'branch', 'content_dir', 'committer_name', 'committer_email', 'credential_env'
    }

    @classmethod
    def _read(cls, config_path: str) -> Dict[str, Any]:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}")

        if not content.strip():
            return {}

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(data).__name__}"
            )
        projects = data.get('projects') or {}
        if not isinstance(projects, dict):
            raise ConfigError("must be a mapping of project id to settings", 'projects')
        return projects

    @classmethod
    def load(cls, config_path: str) -> Dict[str, RepositoryConfig]:
        """Load every project configuration from a YAML file.

        A missing file is an empty configuration.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Mapping of project id to RepositoryConfig

        Raises:
            ConfigError: If the file is unreadable or invalid
        """
        load_dotenv()
        return {
            project_id: cls.parse_project(str(project_id), raw)
            for project_id, raw in cls._read(config_path).items()
        }

    @classmethod
    def get(cls, config_path: str, project_id: str) -> RepositoryConfig:
        """Load a single project's configuration.

        Raises:
            ConfigError: If the project is not configured
        """
        load_dotenv()
        projects = cls._read(config_path)
        if project_id not in projects:
            raise ConfigError(f"Project {project_id} is not configured")
        return cls.parse_project(project_id, projects[project_id])

    @classmethod
    def provider(cls, config_path: str):
        """Config provider callable for ContentService."""
        return lambda project_id: cls.get(config_path, project_id)

    @classmethod
    def parse_project(cls, project_id: str, raw: Any) -> RepositoryConfig:
        """Build a RepositoryConfig from one raw project mapping.

        Raises:
            ConfigError: On missing or unknown fields, or an unset credential variable
        """
        if not isinstance(raw, dict):
            raise ConfigError(f"must be a dictionary, got {type(raw).__name__}", f"projects.{project_id}")

        missing = cls.REQUIRED_PROJECT_FIELDS - set(raw)
        if missing:
            raise ConfigError(
                f"Missing required fields: {', '.join(sorted(missing))}",
                f"projects.{project_id}",
            )
        unknown = set(raw) - cls.REQUIRED_PROJECT_FIELDS - cls.OPTIONAL_PROJECT_FIELDS
        if unknown:
            raise ConfigError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                f"projects.{project_id}",
            )

        credential: Optional[Secret] = None
        credential_env = raw.get('credential_env')
        if credential_env:
            token = os.getenv(str(credential_env))
            if not token:
                raise ConfigError(
                    f"environment variable {credential_env} is not set",
                    f"projects.{project_id}.credential_env",
                )
            credential = Secret(token)

        return RepositoryConfig(
            remote_url=str(raw.get('remote_url') or ''),
            branch=str(raw.get('branch') or ''),
            content_dir=str(raw.get('content_dir') or ''),
            committer_name=str(raw.get('committer_name') or ''),
            committer_email=str(raw.get('committer_email') or ''),
            credential=credential,
        )

    @classmethod
    def save(
        cls,
        config_path: str,
        project_id: str,
        config: RepositoryConfig,
        credential_env: Optional[str] = None,
    ) -> None:
        """Insert or update one project in the YAML file.

        The credential itself is never written; only the name of the
        environment variable that holds it.

        Raises:
            ConfigError: If the file cannot be read or written
        """
        projects = cls._read(config_path)
        entry: Dict[str, Any] = {
            'remote_url': config.remote_url,
            'branch': config.branch,
            'content_dir': config.content_dir,
            'committer_name': config.committer_name,
            'committer_email': config.committer_email,
        }
        previous = projects.get(project_id)
        if credential_env:
            entry['credential_env'] = credential_env
        elif isinstance(previous, dict) and previous.get('credential_env'):
            entry['credential_env'] = previous['credential_env']
        projects[project_id] = entry

        yaml_str = yaml.safe_dump(
            {'projects': projects},
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False
        )

        config_dir = os.path.dirname(config_path)
        try:
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)
            with open(config_path, 'w', encoding='utf-8') as f:
                f.write(yaml_str)
        except OSError as e:
            raise ConfigError(f"Cannot write {config_path}: {e}")
