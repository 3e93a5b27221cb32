"""
Configuration management for the Scene Spec Compiler application.
Loads language-model credentials and settings from environment variables.
"""
import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Config:
    """Configuration class for model credentials and service settings."""
    
    # Language model (any OpenAI-compatible chat completions endpoint)
    LLM_API_KEY: Optional[str] = os.getenv('LLM_API_KEY') or os.getenv('OPENAI_API_KEY')
    LLM_API_BASE: str = os.getenv('LLM_API_BASE', 'https://api.openai.com/v1')
    LLM_MODEL: str = os.getenv('LLM_MODEL', 'gpt-4o')
    LLM_TIMEOUT: int = int(os.getenv('LLM_TIMEOUT', '60'))  # seconds
    
    # Output-length budgets per call
    EXTRACTION_MAX_TOKENS: int = int(os.getenv('EXTRACTION_MAX_TOKENS', '1500'))
    COMPILE_MAX_TOKENS: int = int(os.getenv('COMPILE_MAX_TOKENS', '4500'))
    
    # API Settings
    API_HOST: str = os.getenv('API_HOST', '0.0.0.0')
    API_PORT: int = int(os.getenv('API_PORT', '8000'))
    CORS_ORIGINS: list = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()
    
    @classmethod
    def validate(cls) -> bool:
        """
        Validate that required configuration is present.
        """
        if not cls.LLM_API_KEY:
            raise ValueError(
                "Language model credentials not found. Please set either:\n"
                "  - LLM_API_KEY environment variable, or\n"
                "  - OPENAI_API_KEY environment variable"
            )
        
        if not cls.LLM_API_BASE.startswith(('http://', 'https://')):
            raise ValueError(f"LLM_API_BASE must be an http(s) URL, got: {cls.LLM_API_BASE}")
        
        if cls.EXTRACTION_MAX_TOKENS <= 0 or cls.COMPILE_MAX_TOKENS <= 0:
            raise ValueError("EXTRACTION_MAX_TOKENS and COMPILE_MAX_TOKENS must be positive")
        
        return True
