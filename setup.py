"""
Setup configuration for WebPilot Agent
Hierarchical planning and execution engine for AI-driven browser automation.
"""

from setuptools import setup, find_packages

setup(
    name="webpilot-agent",
    version="0.1.0",
    description="Browser automation agent with hierarchical planning, Google Gemini and Playwright",
    author="WebPilot Team",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "docs"]),
    py_modules=["main"],
    install_requires=[
        # API server
        "fastapi>=0.110.0,<0.137",
        "uvicorn>=0.27.0",
        "slowapi>=0.1.9",
        # Configuration and models
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        # LLM
        "langchain-core>=0.3.0",
        "langchain-google-genai>=2.0.0",
        # Browser automation
        "playwright>=1.40.0",
        "beautifulsoup4>=4.12.0",
        # Utilities
        "requests>=2.31.0",
        "tenacity>=8.2.0",
        "validators>=0.22.0",
        "humanize>=4.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.25.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
