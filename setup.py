"""Setup script for PDF Live Server."""

from setuptools import setup, find_packages

setup(
    name="pdf-live-server",
    version="1.0.0",
    description="Serve a PDF file live and refresh every open viewer when it changes",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    author="PDF Live Server contributors",
    python_requires=">=3.11",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"pdf_live": ["static/*.html", "static/*.mjs"]},
    install_requires=[
        "watchdog>=4.0.1",
        "fastapi>=0.110.0",
        "uvicorn[standard]>=0.29.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "pdf-live-server=pdf_live.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Intended Audience :: Developers",
        "Operating System :: MacOS :: MacOS X",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: Text Processing :: Markup :: LaTeX",
        "Topic :: Utilities",
    ],
)
