"""DeepSexa - web-grounded reasoning chat assistant."""

__version__ = "0.1.0"
