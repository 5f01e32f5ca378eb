from dialogue_prompts.web.app import create_app

__all__ = ["create_app"]
