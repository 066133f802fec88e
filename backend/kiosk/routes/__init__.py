from importlib import import_module

modules = [
    'proxy',
    'users',
    'media',
    'waivers',
    'messages',
    'tickets',
    'locations',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
