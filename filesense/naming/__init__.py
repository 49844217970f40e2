from filesense.naming.base import BaseFilenameSuggester
from filesense.naming.factory import SuggesterFactory
from filesense.naming.fallback import fallback_filename
from filesense.naming.suggester import FilenameSuggester

__all__ = ["BaseFilenameSuggester", "FilenameSuggester", "SuggesterFactory", "fallback_filename"]
