# stream_resolver/services/__init__.py
