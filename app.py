import csv
import io
import logging
from datetime import datetime, timezone
from functools import wraps

import bcrypt
from flask import Flask, request, jsonify, make_response, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_login import LoginManager, UserMixin, login_user, logout_user, current_user
from werkzeug.exceptions import HTTPException

import config
import tracker
from climate import resolve_climate
from pipeline import (
    AssessmentStore,
    InvalidAssessmentError,
    compute_assessment,
    compute_community_view,
    parse_assessment_input,
    share_messages,
)
from report import build_report

logger = logging.getLogger(__name__)

# Initialize the Flask app
app = Flask(__name__)
CORS(app)  # Allow cross-origin requests from frontend

app.config['SECRET_KEY'] = config.SECRET_KEY
app.config['SQLALCHEMY_DATABASE_URI'] = config.DATABASE_URL
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
db = SQLAlchemy(app)

# Initialize Flask-Login
login_manager = LoginManager()
login_manager.init_app(app)

# One tracker store per app, shared by the sustainability routes
app.extensions['tracker_store'] = tracker.TrackerStore()


def _utcnow():
    return datetime.now(timezone.utc)


# --- Database Models ---

class Assessment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(80))
    user_name = db.Column(db.String(120))
    user_email = db.Column(db.String(120), index=True)
    neighborhood_id = db.Column(db.String(200), index=True, nullable=False)

    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    address = db.Column(db.String(300))
    city = db.Column(db.String(120))
    state = db.Column(db.String(120))
    country = db.Column(db.String(120))

    roof_area = db.Column(db.Float, nullable=False)
    roof_type = db.Column(db.String(50), nullable=False)
    water_demand = db.Column(db.Float, nullable=False)

    average_rainfall = db.Column(db.Float, nullable=False)
    monthly_rainfall = db.Column(db.JSON)
    climate_zone = db.Column(db.String(50))
    soil_type = db.Column(db.String(50))
    confidence = db.Column(db.Float)

    annual_harvest = db.Column(db.Integer)
    recommended_system = db.Column(db.String(20))
    estimated_cost = db.Column(db.Integer)
    payback_period = db.Column(db.Float)
    harvest = db.Column(db.JSON)
    system = db.Column(db.JSON)
    costs = db.Column(db.JSON)
    environmental = db.Column(db.JSON)
    recharge = db.Column(db.JSON)

    sustainability_score = db.Column(db.Integer)
    achievements = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=_utcnow)

    @classmethod
    def from_result(cls, assessment_input, result):
        location = assessment_input['location']
        return cls(
            user_id=assessment_input.get('user_id'),
            user_name=assessment_input.get('user_name'),
            user_email=assessment_input.get('user_email'),
            neighborhood_id=result['neighborhood_id'],
            latitude=location['latitude'],
            longitude=location['longitude'],
            address=location['address'],
            city=location['city'],
            state=location['state'],
            country=location['country'],
            roof_area=assessment_input['roof_area'],
            roof_type=assessment_input['roof_type'],
            water_demand=assessment_input['water_demand'],
            average_rainfall=result['rainfall']['annual'],
            monthly_rainfall=result['rainfall']['monthly'],
            climate_zone=result['location']['climate_zone'],
            soil_type=result['location']['soil_type'],
            confidence=result['confidence'],
            annual_harvest=result['harvest']['annual'],
            recommended_system=result['system']['size'],
            estimated_cost=result['costs']['total'],
            payback_period=result['costs']['payback_years'],
            harvest=result['harvest'],
            system=result['system'],
            costs=result['costs'],
            environmental=result['environmental'],
            recharge=result['recharge'],
            sustainability_score=result['score'],
            achievements=result['achievements'],
        )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'user_name': self.user_name,
            'user_email': self.user_email,
            'neighborhood_id': self.neighborhood_id,
            'location': {
                'latitude': self.latitude,
                'longitude': self.longitude,
                'address': self.address,
                'city': self.city,
                'state': self.state,
                'country': self.country,
            },
            'roof_area': self.roof_area,
            'roof_type': self.roof_type,
            'water_demand': self.water_demand,
            'average_rainfall': self.average_rainfall,
            'monthly_rainfall': self.monthly_rainfall,
            'climate_zone': self.climate_zone,
            'soil_type': self.soil_type,
            'confidence': self.confidence,
            'harvest': self.harvest,
            'system': self.system,
            'costs': self.costs,
            'environmental': self.environmental,
            'recharge': self.recharge,
            'sustainability_score': self.sustainability_score,
            'achievements': self.achievements,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class AdminUser(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(50), default='admin')
    created_at = db.Column(db.DateTime, default=_utcnow)
    last_login = db.Column(db.DateTime)

    def set_password(self, password):
        """Hash and set the password"""
        password_bytes = password.encode('utf-8')
        self.password_hash = bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """Check if the provided password matches the hash"""
        password_bytes = password.encode('utf-8')
        return bcrypt.checkpw(password_bytes, self.password_hash.encode('utf-8'))


class SqlAssessmentStore(AssessmentStore):
    """AssessmentStore over the SQLAlchemy session. Database errors propagate."""

    def find_by_neighborhood(self, neighborhood_id):
        rows = (Assessment.query
                .filter_by(neighborhood_id=neighborhood_id)
                .order_by(Assessment.created_at.desc(), Assessment.id.desc())
                .all())
        return [row.to_dict() for row in rows]

    def save(self, record):
        db.session.add(record)
        db.session.commit()
        logger.info(f"Stored assessment {record.id} in '{record.neighborhood_id}'")
        return record.to_dict()


assessment_store = SqlAssessmentStore()


def tracker_store():
    return current_app.extensions['tracker_store']


# Flask-Login user loader
@login_manager.user_loader
def load_user(user_id):
    return db.session.get(AdminUser, int(user_id))


# Admin required decorator
def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Admin login required'}), 401
        return f(*args, **kwargs)
    return decorated_function


@app.errorhandler(HTTPException)
def handle_http_error(e):
    if e.code >= 500:
        logger.error(f"Request failed: {e.description}")
    return jsonify({'success': False, 'error': e.description}), e.code


# --- Assessment Routes ---

@app.route('/api/health')
def health():
    return jsonify({'status': 'ok', 'timestamp': _utcnow().isoformat()})


@app.route('/api/assessments', methods=['POST'])
def create_assessment():
    try:
        assessment_input = parse_assessment_input(request.get_json(silent=True))
    except InvalidAssessmentError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    result = compute_assessment(assessment_input)
    record = assessment_store.save(Assessment.from_result(assessment_input, result))
    return jsonify({'success': True, 'data': record, 'result': result}), 201


@app.route('/api/assessments')
def list_assessments():
    rows = Assessment.query.order_by(Assessment.created_at.desc(), Assessment.id.desc()).all()
    return jsonify({'success': True, 'count': len(rows), 'data': [row.to_dict() for row in rows]})


@app.route('/api/assessments/<int:assessment_id>')
def get_assessment(assessment_id):
    assessment = db.get_or_404(Assessment, assessment_id, description='Assessment not found')
    return jsonify({'success': True, 'data': assessment.to_dict()})


@app.route('/api/assessments/<int:assessment_id>/report')
def download_report(assessment_id):
    assessment = db.get_or_404(Assessment, assessment_id, description='Assessment not found')
    response = make_response(build_report(assessment.to_dict()))
    response.headers['Content-Type'] = 'application/pdf'
    response.headers['Content-Disposition'] = f'attachment; filename=RWH_Report_{assessment.id}.pdf'
    return response


@app.route('/api/calculate', methods=['POST'])
def api_calculate():
    """API endpoint for rapid calculations without database storage."""
    try:
        assessment_input = parse_assessment_input(request.get_json(silent=True))
    except InvalidAssessmentError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return jsonify({'success': True, 'data': compute_assessment(assessment_input)})


@app.route('/api/climate')
def api_climate():
    lat = request.args.get('lat', type=float)
    lon = request.args.get('lon', type=float)
    if lat is None or lon is None:
        return jsonify({'success': False, 'error': 'lat and lon are required'}), 400
    return jsonify({'success': True, 'data': resolve_climate(lat, lon)})


# --- Community Routes ---

CHALLENGES = {
    1: {'name': 'Monsoon Maximizer', 'target': 5000, 'reward': 'Water Warrior Badge'},
    2: {'name': 'Neighbor Helper', 'target': 3, 'reward': 'Community Leader Badge'},
    3: {'name': 'Consistency Champion', 'target': 30, 'reward': 'Dedication Medal'},
}


def _community_view():
    return compute_community_view(
        assessment_store,
        request.args.get('neighborhoodId', config.DEFAULT_NEIGHBORHOOD),
        request.args.get('userId'),
        placeholder=request.args.get('placeholder', 'true').lower() != 'false',
    )


@app.route('/api/community/impact')
def community_impact():
    view = _community_view()
    view.pop('neighbors')
    return jsonify(view)


@app.route('/api/community/leaderboard')
def community_leaderboard():
    view = _community_view()
    return jsonify({
        'neighbors': view['neighbors'],
        'user_position': view['user_rank'],
        'total_participants': view['total_participants'],
    })


@app.route('/api/community/share-message')
def community_share_message():
    return jsonify(share_messages(_community_view()))


@app.route('/api/community/challenge', methods=['POST'])
def join_challenge():
    data = request.get_json(silent=True) or {}
    try:
        challenge_id = int(data.get('challenge_id', data.get('challengeId')))
    except (TypeError, ValueError):
        challenge_id = None

    challenge = CHALLENGES.get(challenge_id)
    if not challenge:
        return jsonify({'success': False, 'error': 'Challenge not found'}), 404

    return jsonify({
        'success': True,
        'message': f"Successfully joined {challenge['name']} challenge!",
        'challenge': {'id': challenge_id, **challenge, 'progress': 0, 'joined': True}
    })


# --- Sustainability Tracker Routes ---

@app.route('/api/sustainability/user/<user_id>')
def tracker_summary(user_id):
    return jsonify(tracker.summary(tracker_store(), user_id))


@app.route('/api/sustainability/user/<user_id>/activity', methods=['POST'])
def tracker_activity(user_id):
    data = request.get_json(silent=True) or {}
    try:
        result = tracker.log_activity(
            tracker_store(), user_id, data.get('liters'),
            activity_type=data.get('type', 'rainwater_collection'),
        )
    except tracker.InvalidActivityError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return jsonify({'success': True, **result})


@app.route('/api/sustainability/user/<user_id>/badges')
def tracker_badges(user_id):
    return jsonify(tracker.badges(tracker_store(), user_id))


@app.route('/api/sustainability/user/<user_id>/milestones')
def tracker_milestones(user_id):
    return jsonify(tracker.milestones(tracker_store(), user_id))


@app.route('/api/sustainability/user/<user_id>/trees')
def tracker_trees(user_id):
    return jsonify(tracker.trees(tracker_store(), user_id))


@app.route('/api/sustainability/user/<user_id>/dashboard')
def tracker_dashboard(user_id):
    return jsonify(tracker.dashboard(tracker_store(), user_id))


@app.route('/api/sustainability/user/<user_id>/reset', methods=['POST'])
def tracker_reset(user_id):
    tracker_store().reset(user_id)
    return jsonify({'success': True, 'message': 'Data reset successfully'})


# --- ADMIN ROUTES ---

@app.route('/admin/login', methods=['POST'])
def admin_login():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')

    if not username or not password:
        return jsonify({'success': False, 'error': 'Please enter both username and password.'}), 400

    user = AdminUser.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        return jsonify({'success': False, 'error': 'Invalid username or password.'}), 401

    login_user(user, remember=bool(data.get('remember')))
    user.last_login = _utcnow()
    db.session.commit()
    return jsonify({'success': True, 'username': user.username})


@app.route('/admin/logout')
@admin_required
def admin_logout():
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'})


@app.route('/admin/dashboard')
@admin_required
def admin_dashboard():
    recent = Assessment.query.order_by(Assessment.id.desc()).limit(5).all()
    popular = (db.session.query(Assessment.neighborhood_id, db.func.count(Assessment.id).label('count'))
               .group_by(Assessment.neighborhood_id)
               .order_by(db.text('count DESC'))
               .limit(5).all())

    return jsonify({
        'total_assessments': Assessment.query.count(),
        'total_admins': AdminUser.query.count(),
        'total_water_potential': db.session.query(db.func.coalesce(db.func.sum(Assessment.annual_harvest), 0)).scalar(),
        'popular_neighborhoods': [{'neighborhood_id': n, 'count': c} for n, c in popular],
        'recent_assessments': [row.to_dict() for row in recent],
    })


@app.route('/admin/assessments')
@admin_required
def admin_assessments():
    page = request.args.get('page', 1, type=int)
    search = request.args.get('search', '', type=str)

    query = Assessment.query
    if search:
        query = query.filter(
            Assessment.user_name.contains(search) |
            Assessment.address.contains(search) |
            Assessment.neighborhood_id.contains(search)
        )

    assessments = query.order_by(Assessment.id.desc()).paginate(page=page, per_page=20, error_out=False)
    return jsonify({
        'page': assessments.page,
        'pages': assessments.pages,
        'total': assessments.total,
        'data': [row.to_dict() for row in assessments.items],
    })


@app.route('/admin/assessments/<int:assessment_id>', methods=['DELETE'])
@admin_required
def admin_delete_assessment(assessment_id):
    assessment = db.get_or_404(Assessment, assessment_id, description='Assessment not found')
    db.session.delete(assessment)
    db.session.commit()
    return jsonify({'success': True, 'message': f'Assessment {assessment_id} has been deleted successfully.'})


@app.route('/admin/analytics')
@admin_required
def admin_analytics():
    def distribution(column):
        rows = (db.session.query(column, db.func.count(Assessment.id).label('count'))
                .group_by(column)
                .order_by(db.text('count DESC'))
                .all())
        return {value: count for value, count in rows}

    return jsonify({
        'roof_types': distribution(Assessment.roof_type),
        'system_sizes': distribution(Assessment.recommended_system),
        'climate_zones': distribution(Assessment.climate_zone),
        'neighborhoods': distribution(Assessment.neighborhood_id),
    })


@app.route('/admin/export/assessments')
@admin_required
def admin_export_assessments():
    """Export all assessments as CSV"""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(['ID', 'Name', 'Email', 'Neighborhood', 'Latitude', 'Longitude',
                     'Roof Area', 'Roof Type', 'Water Demand', 'Annual Rainfall',
                     'Annual Harvest', 'System', 'Estimated Cost', 'Score', 'Created'])

    for row in Assessment.query.order_by(Assessment.id).all():
        writer.writerow([
            row.id, row.user_name, row.user_email, row.neighborhood_id, row.latitude, row.longitude,
            row.roof_area, row.roof_type, row.water_demand, row.average_rainfall,
            row.annual_harvest, row.recommended_system, row.estimated_cost,
            row.sustainability_score, row.created_at.isoformat() if row.created_at else ''
        ])

    response = make_response(output.getvalue())
    response.headers['Content-Type'] = 'text/csv'
    response.headers['Content-Disposition'] = (
        f'attachment; filename=assessments_export_{datetime.now().strftime("%Y%m%d_%H%M%S")}.csv'
    )
    return response


def init_db():
    """Create tables and the default admin user if none exists."""
    db.create_all()
    if AdminUser.query.first():
        return
    if not config.ADMIN_PASSWORD:
        logger.warning("No admin user exists and ADMIN_PASSWORD is not set; admin panel disabled.")
        return
    admin = AdminUser(username=config.ADMIN_USERNAME, email=config.ADMIN_EMAIL, role='admin')
    admin.set_password(config.ADMIN_PASSWORD)
    db.session.add(admin)
    db.session.commit()
    logger.info(f"Default admin user '{config.ADMIN_USERNAME}' created")


if __name__ == '__main__':
    with app.app_context():
        init_db()
    app.run(debug=True)
