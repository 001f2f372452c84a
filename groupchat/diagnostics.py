import logging

import psutil

logger = logging.getLogger(__name__)


def port_holders(port: int):
    """ Lista "pid (nombre)" de los procesos que tienen un socket UDP en el puerto. """
    holders = []
    try:
        connections = psutil.net_connections(kind="udp")
    except (psutil.AccessDenied, PermissionError) as e:
        logger.debug("[Diagnóstico] Sin permisos para listar conexiones: %s", e)
        return holders

    seen = set()
    for conn in connections:
        # Verificamos que la conexión tenga una dirección local y que sea el puerto buscado
        if not conn.laddr or conn.laddr.port != port:
            continue
        pid = conn.pid
        if pid is None or pid in seen:
            continue  # Algunos procesos pueden no tener pid asociado
        seen.add(pid)
        try:
            holders.append(f"{pid} ({psutil.Process(pid).name()})")
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            holders.append(str(pid))
    return holders


def describe_port_in_use(port: int) -> str:
    holders = port_holders(port)
    if not holders:
        return f"el puerto {port} ya está en uso"
    return f"el puerto {port} ya está en uso por: {', '.join(holders)}"
