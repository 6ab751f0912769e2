from setuptools import find_packages, setup

setup(
    name="zoteroclient",
    packages=find_packages("src"),
    package_dir={"": "src"},
    version="0.1.0",
    license="MIT",
    long_description="",
    long_description_content_type="text/markdown",
    description="A simple wrapper over the Zotero Web API v3",
    keywords=["Zotero", "Zotero Web API", "citations", "API Wrapper"],
    python_requires=">=3.10",
    install_requires=["httpx>=0.27"],
    extras_require={"test": ["pytest>=8"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
)
