"""Magpie 链接收藏后端"""

__version__ = "1.0.0"
