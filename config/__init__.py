import os
import json
from pathlib import Path
from dotenv import load_dotenv
from .logging_config import setup_app_logging
import logging

# Load environment variables from .env file
load_dotenv()

# Get the config directory path (where this file is located)
CONFIG_DIR = Path(__file__).parent

PROJECT_ROOT = CONFIG_DIR.parent

# Load configuration from config.json
config_path = CONFIG_DIR / 'config.json'
with open(config_path, 'r', encoding='utf-8') as f:
    CONFIG = json.load(f)

# CONFIG is the in-memory runtime representation of config.json.
# Derived absolute paths are added here so that callers never resolve them on their own.
CONFIG['project_root'] = str(PROJECT_ROOT)

if 'paths' not in CONFIG:
    CONFIG['paths'] = {}

# Environment variables (secrets only, never written to config.json)
ENV = {
    'GROQ_API_KEY': os.getenv('GROQ_API_KEY'),
    'OPENROUTER_API_KEY': os.getenv('OPENROUTER_API_KEY'),
}

# File names of the prompt templates, keyed by the name used in code.
PROMPT_FILES = {
    'classification_system': 'classification_system_prompt.txt',
    'classification': 'classification_prompt.txt',
    'assistant_system': 'assistant_system_prompt.txt',
    'response_with_data': 'response_with_data_prompt.txt',
    'response_no_data': 'response_no_data_prompt.txt',
    'battle_simulation': 'battle_simulation_prompt.txt',
    'summary_system': 'summary_system_prompt.txt',
    'summary': 'summary_prompt.txt',
    'off_topic_response': 'other_queries_response.txt',
}


def load_prompts(prompt_dir: Path = CONFIG_DIR) -> dict:
    """
    Read every prompt template from disk once and return them keyed by logical name.

    The templates are plain text files kept next to config.json so that prompt wording can be
    tuned without touching code. They are read a single time at startup by the composition root
    and handed to the components that need them, which avoids per-request filesystem access.

    Args:
        prompt_dir (Path): Directory holding the template files. Defaults to the config directory.

    Returns:
        dict: Mapping of logical prompt name (see PROMPT_FILES) to the stripped template text.

    Raises:
        FileNotFoundError: If any template is missing. The application cannot answer without them.
    """
    prompts = {}
    for key, file_name in PROMPT_FILES.items():
        prompt_path = Path(prompt_dir) / file_name
        try:
            with open(prompt_path, 'r', encoding='utf-8') as f:
                prompts[key] = f.read().strip()
        except FileNotFoundError:
            raise FileNotFoundError(
                f"Prompt template not found: {prompt_path}\n"
                f"Please ensure {file_name} exists in the config directory."
            )
    return prompts


def validate_config():
    """Validate that all required configuration sections are present.

    API keys are not checked here. They are validated when the LLM client is built, so that
    the package stays importable in tests and tools that never talk to a provider.
    """
    required_sections = ['llm', 'knowledge_sources', 'conversation', 'summary']
    for section in required_sections:
        if section not in CONFIG:
            raise ValueError(f"Missing configuration section: {section}")

    if 'chat' not in CONFIG['llm'].get('models', {}):
        raise ValueError("Missing configuration for LLM model: chat")

# Validate configuration on module import
validate_config()

# --- Helper function to get config value from CONFIG or environment variable ---
def get_config_value(json_keys: list, env_var_name: str, default_value: any = None):
    """
    Retrieves a configuration value.
    Priority:
    1. Environment variable (if env_var_name is provided and variable is set).
    2. Value from CONFIG dictionary (using json_keys).
    3. default_value.
    """
    if env_var_name:
        env_value = os.getenv(env_var_name)
        if env_value is not None:
            # Attempt to match the type of default_value for bool, int and float
            if isinstance(default_value, bool):
                if env_value.lower() == 'true': return True
                if env_value.lower() == 'false': return False
            elif isinstance(default_value, int):
                try:
                    return int(env_value)
                except ValueError:
                    pass
            elif isinstance(default_value, float):
                try:
                    return float(env_value)
                except ValueError:
                    pass
            return env_value

    current_level = CONFIG
    try:
        for key in json_keys:
            current_level = current_level[key]
        if isinstance(current_level, (str, int, bool, float, list, dict)):
            return current_level
    except (KeyError, TypeError):
        pass

    return default_value

# --- Overridable runtime settings ---
_file_provider = CONFIG['llm'].get('provider')
CONFIG['llm']['provider'] = get_config_value(['llm', 'provider'], 'LLM_PROVIDER', 'groq')
if CONFIG['llm']['provider'] != _file_provider:
    # The base_url in config.json belongs to the provider the file was written for.
    CONFIG['llm'].pop('base_url', None)
CONFIG['llm']['base_url'] = get_config_value(['llm', 'base_url'], 'LLM_BASE_URL', '')
CONFIG['llm']['models']['chat']['name'] = get_config_value(
    ['llm', 'models', 'chat', 'name'], 'LLM_MODEL', 'llama-3.1-8b-instant'
)
CONFIG['knowledge_sources']['mode'] = get_config_value(
    ['knowledge_sources', 'mode'], 'KNOWLEDGE_SOURCE_MODE', 'http'
)
CONFIG['knowledge_sources'].setdefault('pokeapi', {})['base_url'] = get_config_value(
    ['knowledge_sources', 'pokeapi', 'base_url'], 'POKEAPI_BASE_URL', 'https://pokeapi.co/api/v2'
)
CONFIG['knowledge_sources'].setdefault('pokedexapi', {})['base_url'] = get_config_value(
    ['knowledge_sources', 'pokedexapi', 'base_url'], 'POKEDEXAPI_BASE_URL', 'https://pokedexapi.com'
)

db_file_name = get_config_value(['paths', 'database_file_name'], 'DB_PATH', 'data/pokebuddy.db')
CONFIG['paths']['database_full_path'] = str(PROJECT_ROOT / db_file_name)

# --- Logging Configuration ---
# Environment variables take precedence over config.json.
CONFIG['logging'] = {
    'level': get_config_value(['logging', 'level'], 'LOG_LEVEL', 'INFO'),
    'file_path': get_config_value(['logging', 'file_path'], 'LOG_FILE_PATH', 'logs/pokebuddy.log'),
    'max_bytes': get_config_value(['logging', 'max_bytes'], 'LOG_MAX_BYTES', 5*1024*1024), # 5MB
    'backup_count': get_config_value(['logging', 'backup_count'], 'LOG_BACKUP_COUNT', 3),
    'date_format': get_config_value(
        ['logging', 'date_format'],
        'LOG_DATE_FORMAT',
        '%Y-%m-%d %H:%M:%S'
    )
}

# --- Setup Application Logging ---
setup_app_logging(config=CONFIG.get('logging'))

config_init_logger = logging.getLogger(__name__)
config_init_logger.info("[config_init] Logging initialized from config/__init__.py using setup_app_logging.")
