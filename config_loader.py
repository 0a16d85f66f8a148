import logging

import yaml

from ftp_fs import FtpBackend, FtpOptions
from isolated_fs import IsolatedBackend
from local_fs import LocalBackend

LOG_FORMAT = "%(levelname)8s: %(message)s"


class Config:
    def __init__(self, config_filename=None):
        self.backend_name = "local"
        self.ftp_host = "127.0.0.1"
        self.ftp_port = 21
        self.ftp_username = "anonymous"
        self.ftp_password = ""
        self.ftp_use_tls = False
        self.ftp_timeout = 30.0
        self.ftp_passive = True
        self.isolation_root = None
        self.log_level = "WARNING"
        if config_filename is not None:
            self.load_config_file(config_filename)

    def load_config_file(self, config_filename):
        with open(config_filename, "r") as file:
            self.load_config(yaml.load(file.read(), Loader=yaml.FullLoader) or {})

    def load_config(self, config):
        self.backend_name = str(config.get("Backend", self.backend_name)).lower()

        ftp_config = config.get("FTP", {})
        self.ftp_host = ftp_config.get("Host", self.ftp_host)
        self.ftp_port = int(ftp_config.get("Port", self.ftp_port))
        self.ftp_username = ftp_config.get("Username", self.ftp_username)
        self.ftp_password = ftp_config.get("Password", self.ftp_password)
        self.ftp_use_tls = bool(ftp_config.get("UseTLS", self.ftp_use_tls))
        self.ftp_timeout = float(ftp_config.get("Timeout", self.ftp_timeout))
        self.ftp_passive = bool(ftp_config.get("Passive", self.ftp_passive))

        isolation_config = config.get("Isolation", {})
        self.isolation_root = isolation_config.get("Root", self.isolation_root)

        logging_config = config.get("Logging", {})
        self.log_level = str(logging_config.get("Level", self.log_level)).upper()

    def ftp_options(self):
        return FtpOptions(
            host=self.ftp_host,
            port=self.ftp_port,
            username=self.ftp_username,
            password=self.ftp_password,
            use_tls=self.ftp_use_tls,
            timeout=self.ftp_timeout,
            passive=self.ftp_passive,
        )

    def make_backend(self):
        """Build the configured backend, isolated below the configured root if there is one"""
        if self.backend_name == "local":
            backend = LocalBackend()
        elif self.backend_name == "ftp":
            backend = FtpBackend(self.ftp_options())
        else:
            raise ValueError(f"unknown backend {self.backend_name!r}, expected 'local' or 'ftp'")
        if self.isolation_root:
            backend = IsolatedBackend(backend, self.isolation_root)
        return backend

    def setup_logging(self):
        logger = logging.getLogger("nodefs")
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
        logger.setLevel(self.log_level)
        return logger
