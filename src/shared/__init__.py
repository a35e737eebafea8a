# src/shared/__init__.py
"""
Общий код между роутерами и доменными модулями.

Модули:
- models: конверт ответа, пагинация, денежный тип
"""

__all__: list[str] = []
