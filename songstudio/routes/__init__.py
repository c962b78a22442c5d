# songstudio/routes/__init__.py
# Blueprints HTTP; se registran en create_app().
