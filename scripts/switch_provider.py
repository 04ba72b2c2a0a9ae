#!/usr/bin/env python3
"""
PokeBuddy Provider Switcher

Usage:
    python scripts/switch_provider.py groq
    python scripts/switch_provider.py openrouter

This script copies the appropriate template config to config.json,
allowing easy switching between LLM providers without manual file editing.
"""

import argparse
import json
import shutil
from pathlib import Path
from typing import Optional

PROVIDERS = {
    'groq': 'GROQ_API_KEY',
    'openrouter': 'OPENROUTER_API_KEY',
}


def switch_provider(provider: str, project_root: Optional[Path] = None) -> Path:
    """
    Switch the active configuration to the specified provider.

    Args:
        provider: Either 'groq' or 'openrouter'
        project_root: Repository root. Defaults to the parent of this script's directory.

    Returns:
        Path: The active config file that was written.

    Raises:
        FileNotFoundError: If the template config doesn't exist
        ValueError: If provider is not supported
    """
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported provider: {provider}. Use one of: {', '.join(PROVIDERS)}")

    project_root = project_root or Path(__file__).resolve().parent.parent
    template_path = project_root / 'config' / 'templates' / f'{provider}.json'
    config_path = project_root / 'config' / 'config.json'

    if not template_path.exists():
        raise FileNotFoundError(f"Template config not found: {template_path}")

    shutil.copy2(template_path, config_path)

    with open(config_path, 'r', encoding='utf-8') as f:
        config = json.load(f)
    llm = config.get('llm', {})

    print(f"✅ Switched to {provider.upper()} provider")
    print(f"   Template: {template_path}")
    print(f"   Active config: {config_path}")
    print(f"   LLM: {llm.get('provider', 'unknown')}")
    print(f"   Model: {llm.get('models', {}).get('chat', {}).get('name', 'unknown')}")
    print(f"   Base URL: {llm.get('base_url', 'unknown')}")
    print(f"\n📝 Note: Make sure to set the appropriate API key:")
    print(f"   export {PROVIDERS[provider]}=your_key_here")
    print(f"\n🔄 Remember to restart the server to apply changes")
    print(f"   python main.py")
    return config_path


def main():
    parser = argparse.ArgumentParser(
        description="Switch PokeBuddy LLM provider configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/switch_provider.py groq
  python scripts/switch_provider.py openrouter
        """
    )
    parser.add_argument(
        'provider',
        choices=sorted(PROVIDERS),
        help='Provider to switch to'
    )

    args = parser.parse_args()
    switch_provider(args.provider)


if __name__ == '__main__':
    main()
