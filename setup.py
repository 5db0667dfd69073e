from setuptools import setup, find_packages

setup(
    name="bulklist",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "requests",
    ],
    extras_require={
        "dev": [
            "pytest",
            "responses",
            "pytest-cov",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            # upload a CSV / id list to a list from the terminal
            "bulklist-upload = bulklist.cli:main",

            # starts the FastAPI/uvicorn control service
            "bulklist-server = bulklist.server:main",

        ],
    },
)
