"""默认系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取随包发布的 system prompt，
作为机器人配置缺失时的内置默认值。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(locale: str = "en") -> str:
    """读取内置的默认系统提示词文本（去掉首尾空白）。"""

    fname = PROMPTS_DIR / locale / "chat_system.md"
    return fname.read_text(encoding="utf-8").strip()
