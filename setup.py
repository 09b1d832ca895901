from setuptools import setup, find_packages

setup(
    name="discord-stamp",
    version="0.1.0",
    description="Discord engagement credential check — account age, servers, roles, verified connections",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "httpx>=0.24",
        "fastapi>=0.100",
        "pydantic>=2.0",
        "slowapi>=0.1.9",
        "python-json-logger>=3.1",
        "uvicorn>=0.22",
    ],
    extras_require={"dev": ["pytest>=7.0", "pytest-asyncio>=0.21", "respx>=0.20"]},
    entry_points={"console_scripts": ["discord-stamp=discord_stamp.cli:main"]},
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Framework :: FastAPI",
        "Programming Language :: Python :: 3",
    ],
    keywords="discord oauth2 credential stamp verification",
)
