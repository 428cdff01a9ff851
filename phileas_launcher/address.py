"""
服务地址归一化：把 host:port 中的空主机或 localhost 固定为 IPv4 回环地址，
避免解析到外部网卡而触发系统防火墙提示。
"""
from __future__ import annotations

LOOPBACK_HOST = '127.0.0.1'
LOCAL_HOST_ALIASES = ('', 'localhost')


def resolve_addr(addr: str) -> str:
  """返回可直接拨号的 host:port；无法识别的输入原样返回。"""
  host, sep, port = addr.rpartition(':')
  if not sep:
    return addr
  if host in LOCAL_HOST_ALIASES:
    return f'{LOOPBACK_HOST}:{port}'
  return addr


def base_url(addr: str) -> str:
  """拼出服务的根 URL。"""
  return f'http://{addr}'


__all__ = ['LOOPBACK_HOST', 'resolve_addr', 'base_url']
