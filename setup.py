from setuptools import setup, find_packages

setup(
    name="examselect",
    version="0.1.0",
    packages=find_packages(exclude=["scripts", "scripts.*"]),
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.0",
        "python-dotenv>=1.0.0",
        "numpy>=1.24.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "httpx>=0.24.0",
        ],
    },
    python_requires=">=3.8",
)
