""" Run the Products API: python -m docquery """

import logging

from .api import create_app


def main():
    app = create_app()

    logging.basicConfig(level=app.config['LOG_LEVEL'],
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    if app.config['SQL_ECHO']:
        logging.getLogger('sqlalchemy.engine').setLevel(logging.INFO)

    app.run(host=app.config['HOST'], port=app.config['PORT'])


if __name__ == '__main__':
    main()
