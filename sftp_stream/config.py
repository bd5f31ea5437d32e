import configparser
from dataclasses import dataclass
from pathlib import Path

TRUE_VALUES = ("true", "1", "yes")


@dataclass
class SSHConfig:
    host: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    key_file: str | None = None  # Path to SSH private key
    key_passphrase: str | None = None  # Passphrase for encrypted keys
    use_agent: bool = True  # Try SSH agent for auth
    encoding: str = "utf-8"


@dataclass
class ConnectionConfig:
    timeout_seconds: int = 30
    keepalive_interval_seconds: int = 60


@dataclass
class TransferConfig:
    chunk_size: int = 32768  # Max bytes per SFTP read request
    file_mode: int = 0o644  # Permissions for files created by uploads/writes
    dir_mode: int = 0o755


@dataclass
class LogConfig:
    level: str = "INFO"
    file: str = "sftp-stream.log"
    console: bool = True


@dataclass
class AppConfig:
    ssh: SSHConfig
    connection: ConnectionConfig
    transfer: TransferConfig
    logging: LogConfig


def _parse_int(section: configparser.SectionProxy, key: str, base: int = 10) -> int:
    value = section.get(key)
    try:
        return int(value, base)
    except ValueError:
        kind = "an octal integer" if base == 8 else "an integer"
        raise ValueError(f"Invalid {key} value in config: '{value}' - must be {kind}")


def _parse_bool(section: configparser.SectionProxy, key: str) -> bool:
    return section.get(key, "false").lower() in TRUE_VALUES


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over config file.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments
            (host, port, username, password, key_file, key_passphrase, debug).

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If the host is missing or a numeric value is invalid.
    """
    ssh_config = {
        "host": None,
        "port": 22,
        "username": None,
        "password": None,
        "key_file": None,
        "key_passphrase": None,
        "use_agent": True,
        "encoding": "utf-8",
    }
    connection_config = {
        "timeout_seconds": 30,
        "keepalive_interval_seconds": 60,
    }
    transfer_config = {
        "chunk_size": 32768,
        "file_mode": 0o644,
        "dir_mode": 0o755,
    }
    log_config = {
        "level": "INFO",
        "file": "sftp-stream.log",
        "console": True,
    }

    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        # Load [ssh] section
        if parser.has_section("ssh"):
            ssh_section = parser["ssh"]
            for key in ("host", "username", "password", "key_file", "key_passphrase", "encoding"):
                if ssh_section.get(key):
                    ssh_config[key] = ssh_section.get(key)
            if ssh_section.get("port"):
                ssh_config["port"] = _parse_int(ssh_section, "port")
            if ssh_section.get("use_agent"):
                ssh_config["use_agent"] = _parse_bool(ssh_section, "use_agent")

        # Load [connection] section
        if parser.has_section("connection"):
            conn_section = parser["connection"]
            for key in connection_config:
                if conn_section.get(key):
                    connection_config[key] = _parse_int(conn_section, key)

        # Load [transfer] section; modes are written in octal (644, 0755)
        if parser.has_section("transfer"):
            transfer_section = parser["transfer"]
            if transfer_section.get("chunk_size"):
                transfer_config["chunk_size"] = _parse_int(transfer_section, "chunk_size")
            for key in ("file_mode", "dir_mode"):
                if transfer_section.get(key):
                    transfer_config[key] = _parse_int(transfer_section, key, base=8)

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if log_section.get("file") is not None:
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = _parse_bool(log_section, "console")

    # Override with CLI arguments (cli_args take precedence)
    for key in ("host", "key_file", "key_passphrase"):
        if cli_args.get(key) is not None:
            ssh_config[key] = cli_args[key]
    if cli_args.get("port") is not None:
        ssh_config["port"] = int(cli_args["port"])
    if cli_args.get("username") is not None:
        ssh_config["username"] = cli_args["username"] or None
    if cli_args.get("password") is not None:
        ssh_config["password"] = cli_args["password"] or None
    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    if not ssh_config["host"]:
        raise ValueError("Missing required configuration fields: host")
    if transfer_config["chunk_size"] <= 0:
        raise ValueError(
            f"Invalid chunk_size value in config: '{transfer_config['chunk_size']}' - must be positive"
        )

    return AppConfig(
        ssh=SSHConfig(**ssh_config),
        connection=ConnectionConfig(**connection_config),
        transfer=TransferConfig(**transfer_config),
        logging=LogConfig(**log_config),
    )
