"""Run the gateway with Quart's development server."""
import os

from tour_gateway.src.app import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host=os.getenv('HOST', '127.0.0.1'), port=int(os.getenv('PORT', '5010')),
            debug=app.config['GATEWAY_CONFIG'].debug)
