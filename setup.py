from setuptools import setup, find_packages

setup(
    name="gcra-limiter",
    version="0.1.0",
    packages=find_packages(include=["gcra_limiter", "gcra_limiter.*"]),
    python_requires=">=3.11",
    install_requires=[
        "redis>=5.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "fastapi>=0.110",
        "starlette>=0.36",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
)
