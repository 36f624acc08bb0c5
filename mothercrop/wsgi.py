import os
import sys
try:
    from . import create_app
except ImportError:  # pragma: no cover - fallback when running from mothercrop/ cwd
    from __init__ import create_app

app = create_app()

if __name__ == '__main__':
    port = int(sys.argv[1]) if len(sys.argv) > 1 else int(os.environ.get('PORT', 5000))
    app.logger.info('Serving Mothercrop on http://127.0.0.1:%s', port)
    app.run(host='127.0.0.1', port=port, debug=False)
