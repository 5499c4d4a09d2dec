"""
Configuration du ZigSniperBot
"""

import os
import json
import logging
from typing import Dict, Any

logger = logging.getLogger("config")

# Configuration par défaut
DEFAULT_CONFIG = {
    "SIMULATION_MODE": True,

    # Chain
    "ZIGCHAIN_API_URL": "https://public-zigchain-lcd.numia.xyz",
    "ZIGCHAIN_RPC_URL": "https://public-zigchain-rpc.numia.xyz:443",
    "CHAIN_ID": "zigchain-1",
    "BECH32_PREFIX": "zig",
    "NATIVE_DENOM": "uzig",
    "GAS_PRICE": "0.0025uzig",
    "GAS_ADJUSTMENT": 1.5,
    "ZIGCHAIND_BINARY": "zigchaind",
    "KEYRING_BACKEND": "test",
    "REQUEST_TIMEOUT_SECONDS": 10,

    # Polling (secondes)
    "NEW_TOKEN_POLL_INTERVAL": 1.0,
    "GRADUATION_POLL_INTERVAL": 2.0,

    # Execution
    "ESTIMATED_GAS_UZIG": 5000,
    "EXECUTION_TIMEOUT_SECONDS": 60,

    # DEX routing
    "OROSWAP_FACTORY": "zig1xx3aupmgv3ce537c0yce8zzd3sz567syaltr2tdehu3y803yz6gsc6tz85",
    "PAIR_PAGE_LIMIT": 30,
    "MAX_PAIR_PAGES": 10,
    "DEX_MAX_SPREAD": "0.5",

    # Notifier
    "ENABLE_TELEGRAM": False,
    "TELEGRAM_BOT_TOKEN": "",
    "TELEGRAM_CHAT_ID": "",
    "TOKEN_ID_MAP_SIZE": 10000,
    "PERFORMANCE_REPORT_INTERVAL_SECONDS": 1800,

    # System
    "KNOWN_ENTITIES_FILE": "",
    "USERS_FILE": "users.json",
    "POSITIONS_FILE": "simulated_positions.json"
}

def load_config() -> Dict[str, Any]:
    """
    Charge la configuration depuis le fichier config.json
    Si le fichier n'existe pas, crée un fichier avec la configuration par défaut

    Returns:
        Dictionnaire de configuration
    """
    config_file = os.environ.get("CONFIG_FILE", "config.json")

    if os.environ.get("USE_ENV_CONFIG", "").lower() == "true":
        logger.info("Chargement de la configuration depuis les variables d'environnement")
        config = load_config_from_env()
    else:
        if not os.path.exists(config_file):
            with open(config_file, "w") as f:
                json.dump(DEFAULT_CONFIG, f, indent=2)
            logger.info(f"Fichier de configuration créé: {config_file}")
            return dict(DEFAULT_CONFIG)

        try:
            with open(config_file, "r") as f:
                config = json.load(f)
            logger.info(f"Configuration chargée depuis: {config_file}")
        except (OSError, ValueError) as e:
            logger.error(f"Erreur lors du chargement de la configuration: {e}")
            logger.info("Utilisation de la configuration par défaut")
            return dict(DEFAULT_CONFIG)

    # Fusion avec les clés manquantes
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config

def load_config_from_env() -> Dict[str, Any]:
    """
    Charge la configuration depuis les variables d'environnement

    Returns:
        Dictionnaire de configuration
    """
    config = {}

    for key, default_value in DEFAULT_CONFIG.items():
        env_value = os.environ.get(key)

        if env_value is not None:
            try:
                if isinstance(default_value, bool):
                    config[key] = env_value.lower() == "true"
                elif isinstance(default_value, int):
                    config[key] = int(env_value)
                elif isinstance(default_value, float):
                    config[key] = float(env_value)
                else:
                    config[key] = env_value
            except ValueError as parse_err:
                logger.warning(f"Impossible de parser la variable d'env {key}: {parse_err}. Valeur par défaut utilisée.")
                config[key] = default_value
        else:
            config[key] = default_value

    return config

def save_config(config: Dict[str, Any], config_file: str = "config.json") -> bool:
    """
    Sauvegarde la configuration dans le fichier config.json

    Args:
        config: Dictionnaire de configuration
        config_file: Chemin du fichier

    Returns:
        True si la sauvegarde a réussi, False sinon
    """
    try:
        with open(config_file, "w") as f:
            json.dump(config, f, indent=2)
        logger.info(f"Configuration sauvegardée dans: {config_file}")
        return True
    except OSError as e:
        logger.error(f"Erreur lors de la sauvegarde de la configuration: {e}")
        return False
