from setuptools import setup, find_packages

setup(
    name='maxent-project',
    version='0.1.0',
    description='Project fitted Maxent species distribution models from their lambdas files',
    author='Matthew Whittle',
    author_email='matthewjwhittle@gmail.com',
    url='https://github.com/matthewjwhittle/sheffield-bats',
    packages=find_packages(include=['maxent_project', 'maxent_project.*']),
    python_requires='>=3.11',
    install_requires=[
        'numpy',
        'pandas',
        'xarray',
        'rioxarray',
        'rasterio',
        'tqdm',
        'typer',
        'pyyaml',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'maxent-project=maxent_project.cli:app',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
