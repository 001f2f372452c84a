import logging

# Valores por defecto del grupo multicast (rango 224.0.0.0 - 239.255.255.255)
DEFAULT_GROUP = "239.0.0.0"
DEFAULT_PORT = 1234

MIN_PORT = 1024
MAX_PORT = 65535

MULTICAST_TTL = 1 # Time-to-live (saltos máximos), 1 = solo la subred local
MAX_PAYLOAD_BYTES = 1000 # Tamaño máximo de un datagrama de chat
POLL_INTERVAL = 0.5 # Segundos entre revisiones del estado mientras se espera un datagrama

SEPARATOR = ": "
TERMINATE_KEYWORD = "Exit"

JOIN_ANNOUNCEMENT = "{name} se ha unido al chat."
LEAVE_ANNOUNCEMENT = "{name} ha salido del chat."

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level="WARNING"):
    """ Configura el logging de la aplicación (consola y ventana). """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()]
    )
