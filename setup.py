from setuptools import setup, find_packages

setup(
    name="ide-login",
    version="1.0.0",
    description="Google account login for desktop development tools",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        'google-auth>=2.20.0',
        'google-auth-oauthlib>=1.0.0',
        'oauthlib>=3.2.0',
        'requests>=2.31.0',
        'pydantic>=2.0.0',
        'pydantic-settings>=2.0.0',
        'python-dotenv>=1.0.0',
        'typer>=0.9.0',
        'rich>=13.0.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0.0',
            'pytest-mock>=3.10.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'ide-login=idelogin.cli:main',
        ],
    },
)
