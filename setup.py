from setuptools import setup

version = '0.1'

with open("README.md", "r", encoding="utf-8") as f:
    long_descr = f.read()

setup(
    name='pyavrcontrol',
    packages=['pyavrcontrol'],
    version=version,
    license='Apache 2.0',
    description='Voice skill web service controlling a Pioneer AVR over telnet',
    long_description=long_descr,
    long_description_content_type='text/markdown',
    author='johnno',
    author_email='johnno@example.com',
    url='https://github.com/johnno/pyavrcontrol',
    download_url=f'https://github.com/johnno/pyavrcontrol/archive/{version}.tar.gz',
    keywords=['Pioneer', 'AVR', 'telnet', 'Alexa'],
    python_requires='>=3.10',
    install_requires=[
        "aiohttp>=3.8.3",
    ],
    extras_require={
        'test': [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Home Automation',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3.10'
    ],
)
