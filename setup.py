"""
Setup script for adaptive-quizbank.

The quiz bank service hands students multiple-choice quizzes for a learning
objective at a target difficulty. It serves three roles:

1. Allocation - Reuse a bank the student has not seen, or generate a new one
2. Generation - OpenAI / Gemini question generation with a template fallback
3. Reporting - Usage and completion statistics per objective

The 'quizbank' command is the entry point for maintenance tasks.
"""

from setuptools import find_packages, setup

setup(
    name="adaptive-quizbank",
    version="0.1.0",
    description="Reusable AI-generated quiz banks per learning objective and difficulty",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["quizbank", "quizbank.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # AI
        "google-generativeai>=0.3.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "quizbank=quizbank.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="quiz education question-generation adaptive-learning",
)
