"""Memory, disks, network interfaces, connections and ports."""

import logging
import socket
from collections.abc import Callable
from pathlib import Path

import psutil

from hostwatch.models import (
    ConnectionRecord,
    DiskRecord,
    InterfaceCounters,
    InterfaceType,
    MemoryInfo,
    MountEntry,
    NetworkInterfaceRecord,
    PortRecord,
    TcpState,
)
from hostwatch.readers import (
    is_real_mount,
    parse_meminfo,
    parse_mounts,
    parse_net_dev,
    parse_socket_table,
    read_int,
    read_text,
)

logger = logging.getLogger(__name__)

# Evaluated in order, first match wins.
INTERFACE_PREFIX_RULES: list[tuple[Callable[[str], bool], InterfaceType]] = [
    (lambda name: name == "lo" or name.startswith("lo:"), InterfaceType.LOOPBACK),
    (lambda name: name.startswith(("docker", "veth")), InterfaceType.DOCKER),
    (lambda name: name.startswith(("br", "virbr")), InterfaceType.BRIDGE),
    (lambda name: name.startswith(("wlan", "wl", "wifi")), InterfaceType.WIRELESS),
    (lambda name: name.startswith(("tun", "tap", "wg", "ppp", "vpn", "ipsec")), InterfaceType.VPN),
    (lambda name: name.startswith(("eth", "en", "em")), InterfaceType.ETHERNET),
]

# ARPHRD_* hardware types from <linux/if_arp.h>.
ARPHRD_TYPES: dict[int, InterfaceType] = {
    1: InterfaceType.ETHERNET,  # ARPHRD_ETHER
    512: InterfaceType.VPN,  # ARPHRD_PPP
    768: InterfaceType.VPN,  # ARPHRD_TUNNEL
    769: InterfaceType.VPN,  # ARPHRD_TUNNEL6
    772: InterfaceType.LOOPBACK,  # ARPHRD_LOOPBACK
    801: InterfaceType.WIRELESS,  # ARPHRD_IEEE80211
    803: InterfaceType.WIRELESS,  # ARPHRD_IEEE80211_RADIOTAP
    65534: InterfaceType.VPN,  # ARPHRD_NONE (tun, wireguard)
}

# UDP sockets have no LISTEN state; an unconnected bound socket shows CLOSE.
_UDP_BOUND_STATE = TcpState.CLOSE


def classify_interface_name(name: str) -> InterfaceType:
    """Classify by name prefix alone, UNKNOWN when nothing matches."""
    for predicate, kind in INTERFACE_PREFIX_RULES:
        if predicate(name):
            return kind
    return InterfaceType.UNKNOWN


def classify_arphrd(hw_type: int | None) -> InterfaceType:
    if hw_type is None:
        return InterfaceType.UNKNOWN
    return ARPHRD_TYPES.get(hw_type, InterfaceType.UNKNOWN)


def classify_interface(name: str, sys_root: Path) -> InterfaceType:
    """Name-prefix heuristic first, then the numeric sysfs ``type``."""
    kind = classify_interface_name(name)
    if kind is not InterfaceType.UNKNOWN:
        return kind
    return classify_arphrd(read_int(sys_root / "class" / "net" / name / "type"))


def mac_address(name: str, sys_root: Path, addrs: list | None = None) -> str:
    """
    Hardware address of an interface.

    The sysfs ``address`` attribute is preferred; the link-layer entry from
    ``psutil.net_if_addrs()`` is the fallback.
    """
    text = read_text(sys_root / "class" / "net" / name / "address")
    if text and text.strip():
        return text.strip()
    for addr in addrs or []:
        if addr.family == psutil.AF_LINK and addr.address:
            return addr.address
    return ""


def interface_is_up(name: str, sys_root: Path, stats: dict | None = None) -> bool:
    """
    Up/down status of an interface.

    sysfs ``operstate`` decides when it says up or down. Otherwise (missing,
    or ``unknown`` as loopback reports) the interface flags must carry both
    ``up`` and ``running``.
    """
    state = read_text(sys_root / "class" / "net" / name / "operstate")
    if state is not None:
        state = state.strip()
        if state == "up":
            return True
        if state == "down":
            return False

    stat = (stats or {}).get(name)
    if stat is None:
        return False
    flags = getattr(stat, "flags", "")
    if flags:
        flag_set = set(flags.split(","))
        return "up" in flag_set and "running" in flag_set
    return bool(stat.isup)


def list_interfaces(sys_root: Path) -> list[NetworkInterfaceRecord]:
    """All interfaces carrying an IPv4 address."""
    try:
        all_addrs = psutil.net_if_addrs()
    except OSError:
        logger.debug("Interface address query failed", exc_info=True)
        return []
    try:
        stats = psutil.net_if_stats()
    except OSError:
        stats = {}

    interfaces = []
    for name, addrs in all_addrs.items():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            interfaces.append(
                NetworkInterfaceRecord(
                    name=name,
                    type=classify_interface(name, sys_root),
                    is_up=interface_is_up(name, sys_root, stats),
                    ipv4_address=addr.address,
                    mac_address=mac_address(name, sys_root, addrs),
                )
            )
    return interfaces


def read_interface_counters(proc_root: Path) -> dict[str, InterfaceCounters]:
    text = read_text(proc_root / "net" / "dev")
    return parse_net_dev(text) if text else {}


def disk_record(entry: MountEntry) -> DiskRecord | None:
    """Usage of one mount point, None when it cannot be queried or is empty."""
    try:
        usage = psutil.disk_usage(entry.mount_point)
    except OSError:
        logger.debug("Cannot stat filesystem at %s", entry.mount_point)
        return None
    if usage.total <= 0:
        return None
    return DiskRecord(
        mount_point=entry.mount_point,
        device=entry.device,
        fs_type=entry.fs_type,
        total=usage.total,
        free=usage.free,
        used=usage.used,
    )


def list_disks(proc_root: Path) -> list[DiskRecord]:
    """
    One record per real backing device.

    When a device is mounted more than once the first mount point wins. The
    root filesystem is reported only when no real device was found.
    """
    disks: list[DiskRecord] = []
    seen_devices: set[str] = set()

    text = read_text(proc_root / "mounts")
    for entry in parse_mounts(text or ""):
        if not is_real_mount(entry) or entry.device in seen_devices:
            continue
        record = disk_record(entry)
        if record is not None:
            disks.append(record)
            seen_devices.add(entry.device)

    if not disks:
        root = disk_record(MountEntry(device="rootfs", mount_point="/", fs_type=""))
        if root is not None:
            disks.append(root)
    return disks


def list_connections(proc_root: Path) -> list[ConnectionRecord]:
    """IPv4 TCP connections in every state."""
    text = read_text(proc_root / "net" / "tcp")
    return parse_socket_table(text, "TCP") if text else []


def list_listening_ports(proc_root: Path) -> list[PortRecord]:
    """TCP ports in LISTEN plus bound UDP ports, sorted by port."""
    ports: dict[tuple[int, str], PortRecord] = {}

    for conn in list_connections(proc_root):
        if conn.state is TcpState.LISTEN:
            ports.setdefault((conn.local_port, "TCP"), PortRecord(conn.local_port, "TCP", "LISTEN"))

    text = read_text(proc_root / "net" / "udp")
    for conn in parse_socket_table(text, "UDP") if text else []:
        if conn.state is _UDP_BOUND_STATE and conn.remote_port == 0:
            ports.setdefault((conn.local_port, "UDP"), PortRecord(conn.local_port, "UDP", "OPEN"))

    return sorted(ports.values(), key=lambda p: (p.port, p.protocol))


def read_memory(proc_root: Path) -> MemoryInfo:
    """
    RAM and swap usage.

    Parsed from meminfo when available, otherwise taken from psutil's
    structured query. Zeroed when both fail.
    """
    text = read_text(proc_root / "meminfo")
    if text:
        info = parse_meminfo(text)
        if info.total_ram > 0:
            return info
    try:
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
    except (OSError, RuntimeError):
        logger.debug("Memory query failed", exc_info=True)
        return MemoryInfo()
    return MemoryInfo(
        total_ram=mem.total,
        free_ram=mem.free,
        used_ram=mem.used,
        total_swap=swap.total,
        free_swap=swap.free,
        used_swap=swap.used,
    )
