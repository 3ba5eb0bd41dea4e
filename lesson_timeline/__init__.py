"""课件时间线：构建、播放与编辑。"""

__version__ = "0.1.0"
