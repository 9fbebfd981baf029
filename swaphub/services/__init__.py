# swaphub/services/__init__.py
