from setuptools import setup, find_namespace_packages

setup(
    name="sqla",
    version="1.0.0",
    description="SQL Assistant: natural language to SQL over MySQL, PostgreSQL, SQLite and H2",
    packages=find_namespace_packages(include=["core*", "ui*", "utils*"]),
    py_modules=["main", "config", "simple_cli"],
    package_data={"ui": ["*.tcss"]},
    python_requires=">=3.10",
    install_requires=[
        "textual>=0.47.0",
        "rich>=13.7.0",
        "httpx>=0.25.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "loguru>=0.7.2",
        "prompt_toolkit>=3.0.43",
        "click>=8.1.7",
        "tabulate>=0.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sqla=main:cli",
        ],
    },
)
