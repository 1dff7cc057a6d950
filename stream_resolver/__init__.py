# stream_resolver/__init__.py
