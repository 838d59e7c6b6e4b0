"""Package metadata for cognito-oauth."""

__app_name__ = "cognito-oauth"
__version__ = "0.3.0"
__author__ = "cognito-oauth contributors"
__description__ = "OAuth2 callback strategy for Amazon Cognito user pools."

__all__ = [
    "__app_name__",
    "__author__",
    "__description__",
    "__version__",
]
