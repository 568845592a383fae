from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, date
import logging, math, os, re

from sqlalchemy import func

from categorizer import Categorizer, UserCategory, ValidationError, KIND_NAMES, parse_kind
from categories import load_keyword_dictionary

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('FINANCE_DB_URI', 'sqlite:///finance_tracker.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['CATEGORY_KEYWORDS_FILE'] = os.environ.get('CATEGORY_KEYWORDS_FILE')

logging.basicConfig(
    level=os.environ.get('FINANCE_LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
)
logger = logging.getLogger('finance_tracker')

db = SQLAlchemy()
db.init_app(app)

categorizer = Categorizer(load_keyword_dictionary(app.config['CATEGORY_KEYWORDS_FILE']))
logger.info("Loaded %r", categorizer.dictionary)

BUDGET_PERIODS = ['MONTHLY', 'YEARLY']
HEX_COLOR_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}){1,2}$')
DEFAULT_COLOR = '#6b7280'
DEFAULT_ICON = '📁'

####
# Models
####
class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    type = db.Column(db.String(10), nullable=False)  # 'INCOME' or 'EXPENSE'
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_COLOR)
    icon = db.Column(db.String(10), nullable=False, default=DEFAULT_ICON)
    created_at = db.Column(db.DateTime, default=datetime.now)

class Transaction(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    amount = db.Column(db.Float, nullable=False)
    type = db.Column(db.String(10), nullable=False)
    description = db.Column(db.String(500))
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False)
    category = db.relationship('Category')
    date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

class Budget(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False)
    category = db.relationship('Category')
    amount = db.Column(db.Float, nullable=False)
    period = db.Column(db.String(10), nullable=False)  # 'MONTHLY' or 'YEARLY'
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

class CategorizationFeedback(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    original_description = db.Column(db.String(500), nullable=False)
    suggested_category = db.Column(db.String(100), nullable=False)
    user_selected_category = db.Column(db.String(100), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.now)

####
# Helper Functions
####
def validate_amount(amount):
    """Validate that amount is a number of at least one cent"""
    try:
        amt = float(amount)
    except (ValueError, TypeError):
        return None, "Invalid amount format"
    if not math.isfinite(amt) or amt < 0.01:
        return None, "Amount must be at least 0.01"
    return amt, None

def validate_date(date_str):
    """Validate an ISO date (YYYY-MM-DD, a 'T...' time part is ignored)"""
    if not isinstance(date_str, str):
        return None, "Invalid date format"
    day, rest = date_str[:10], date_str[10:]
    if rest and not rest.startswith('T'):
        return None, "Invalid date format"
    try:
        return datetime.strptime(day, '%Y-%m-%d').date(), None
    except ValueError:
        return None, "Invalid date format"

def validate_type(value):
    try:
        return parse_kind(value).value, None
    except ValidationError:
        return None, f"Type must be one of {KIND_NAMES}"

def validate_text(value, field, min_len=1, max_len=500):
    """Trim ``value`` and check its length"""
    if value is None:
        value = ''
    if not isinstance(value, str):
        return None, f"{field} must be a string"
    value = value.strip()
    if not min_len <= len(value) <= max_len:
        if min_len:
            return None, f"{field} must be between {min_len} and {max_len} characters"
        return None, f"{field} must be at most {max_len} characters"
    return value, None

def validation_failed(details):
    return jsonify({'error': 'Validation failed', 'details': details}), 400

def not_found(what):
    return jsonify({'error': f'{what} not found'}), 404

def parse_id(value):
    try:
        return int(value)
    except (ValueError, TypeError):
        return None

def category_json(c):
    return {
        'id': c.id,
        'name': c.name,
        'type': c.type,
        'color': c.color,
        'icon': c.icon,
        'created_at': c.created_at.isoformat() if c.created_at else None,
    }

def category_ref(c):
    return {'id': c.id, 'name': c.name, 'color': c.color, 'icon': c.icon}

def transaction_json(t):
    return {
        'id': t.id,
        'amount': t.amount,
        'type': t.type,
        'description': t.description,
        'category_id': t.category_id,
        'category': category_ref(t.category),
        'date': t.date.isoformat(),
        'created_at': t.created_at.isoformat() if t.created_at else None,
        'updated_at': t.updated_at.isoformat() if t.updated_at else None,
    }

def budget_json(b):
    return {
        'id': b.id,
        'category_id': b.category_id,
        'category': category_ref(b.category),
        'amount': b.amount,
        'period': b.period,
        'start_date': b.start_date.isoformat(),
        'end_date': b.end_date.isoformat() if b.end_date else None,
        'is_active': b.is_active,
        'created_at': b.created_at.isoformat() if b.created_at else None,
        'updated_at': b.updated_at.isoformat() if b.updated_at else None,
    }

def feedback_json(f):
    return {
        'id': f.id,
        'original_description': f.original_description,
        'suggested_category': f.suggested_category,
        'user_selected_category': f.user_selected_category,
        'is_correct': f.is_correct,
        'timestamp': f.timestamp.isoformat() if f.timestamp else None,
    }

def user_categories(kind):
    """The user's categories of one type, as engine candidates"""
    cats = Category.query.filter_by(type=kind).order_by(Category.id).all()
    return [UserCategory(id=c.id, name=c.name, kind=c.type) for c in cats]

def date_range_args():
    """Read optional start_date/end_date query parameters"""
    errors = []
    bounds = []
    for field in ('start_date', 'end_date'):
        raw = request.args.get(field)
        if not raw:
            bounds.append(None)
            continue
        value, error = validate_date(raw)
        if error:
            errors.append({'field': field, 'message': error})
        bounds.append(value)
    return bounds[0], bounds[1], errors

@app.errorhandler(404)
def handle_not_found(e):
    return jsonify({'error': 'Not found'}), 404

@app.errorhandler(405)
def handle_method_not_allowed(e):
    return jsonify({'error': 'Method not allowed'}), 405

####
# API: Categories
####
def _validate_category_fields(data, partial=False):
    errors = []
    values = {}
    if not partial or 'name' in data:
        values['name'], error = validate_text(data.get('name'), 'Name', 1, 50)
        if error:
            errors.append({'field': 'name', 'message': error})
    if not partial or 'type' in data:
        values['type'], error = validate_type(data.get('type'))
        if error:
            errors.append({'field': 'type', 'message': error})
    if 'color' in data or not partial:
        color = data.get('color') or DEFAULT_COLOR
        if not isinstance(color, str) or not HEX_COLOR_RE.match(color):
            errors.append({'field': 'color', 'message': 'Color must be a hex color'})
        else:
            values['color'] = color
    if 'icon' in data or not partial:
        values['icon'], error = validate_text(data.get('icon') or DEFAULT_ICON, 'Icon', 1, 10)
        if error:
            errors.append({'field': 'icon', 'message': error})
    return values, errors

@app.route('/api/categories')
def list_categories():
    try:
        q = Category.query
        if request.args.get('type'):
            ctype, error = validate_type(request.args['type'])
            if error:
                return validation_failed([{'field': 'type', 'message': error}])
            q = q.filter_by(type=ctype)
        cats = q.order_by(Category.type, Category.name).all()
        return jsonify([category_json(c) for c in cats])
    except Exception as e:
        logger.exception("Get categories failed")
        return jsonify({'error': 'Failed to fetch categories'}), 500

@app.route('/api/categories/<int:id>')
def get_category(id):
    cat = db.session.get(Category, id)
    if not cat:
        return not_found('Category')
    return jsonify(category_json(cat))

@app.route('/api/categories', methods=['POST'])
def create_category():
    try:
        data = request.get_json(silent=True) or {}
        values, errors = _validate_category_fields(data)
        if errors:
            return validation_failed(errors)

        if Category.query.filter_by(name=values['name']).first():
            return jsonify({'error': 'Category with this name already exists'}), 400

        cat = Category(**values)
        db.session.add(cat)
        db.session.commit()
        logger.info("Created %s category %r", cat.type, cat.name)
        return jsonify(category_json(cat)), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Create category failed")
        return jsonify({'error': 'Failed to create category'}), 500

@app.route('/api/categories/<int:id>', methods=['PUT'])
def update_category(id):
    try:
        cat = db.session.get(Category, id)
        if not cat:
            return not_found('Category')
        data = request.get_json(silent=True) or {}
        values, errors = _validate_category_fields(data, partial=True)
        if errors:
            return validation_failed(errors)

        if 'name' in values and values['name'] != cat.name:
            conflict = Category.query.filter(Category.name == values['name'], Category.id != id).first()
            if conflict:
                return jsonify({'error': 'Category with this name already exists'}), 400
        if 'type' in values and values['type'] != cat.type:
            if Transaction.query.filter_by(category_id=id).count():
                return jsonify({'error': 'Cannot change the type of a category with existing transactions'}), 400

        for key, value in values.items():
            setattr(cat, key, value)
        db.session.commit()
        return jsonify(category_json(cat))
    except Exception as e:
        db.session.rollback()
        logger.exception("Update category failed")
        return jsonify({'error': 'Failed to update category'}), 500

@app.route('/api/categories/<int:id>', methods=['DELETE'])
def delete_category(id):
    try:
        cat = db.session.get(Category, id)
        if not cat:
            return not_found('Category')
        if Transaction.query.filter_by(category_id=id).count():
            return jsonify({'error': 'Cannot delete category with existing transactions'}), 400
        if Budget.query.filter_by(category_id=id).count():
            return jsonify({'error': 'Cannot delete category with existing budgets'}), 400
        db.session.delete(cat)
        db.session.commit()
        return jsonify({'message': 'Category deleted successfully'})
    except Exception as e:
        db.session.rollback()
        logger.exception("Delete category failed")
        return jsonify({'error': 'Failed to delete category'}), 500

####
# API: Transactions
####
def _validate_transaction_fields(data, partial=False):
    errors = []
    values = {}
    if not partial or 'amount' in data:
        values['amount'], error = validate_amount(data.get('amount'))
        if error:
            errors.append({'field': 'amount', 'message': error})
    if not partial or 'type' in data:
        values['type'], error = validate_type(data.get('type'))
        if error:
            errors.append({'field': 'type', 'message': error})
    if not partial or 'description' in data:
        values['description'], error = validate_text(data.get('description'), 'Description', 0, 500)
        if error:
            errors.append({'field': 'description', 'message': error})
    if not partial or 'date' in data:
        values['date'], error = validate_date(data.get('date'))
        if error:
            errors.append({'field': 'date', 'message': error})
    if data.get('category_id') not in (None, ''):
        values['category_id'] = parse_id(data['category_id'])
        if values['category_id'] is None:
            errors.append({'field': 'category_id', 'message': 'Invalid category id'})
    return values, errors

@app.route('/api/transactions')
def list_transactions():
    try:
        errors = []
        q = Transaction.query

        if request.args.get('type'):
            tx_type, error = validate_type(request.args['type'])
            if error:
                errors.append({'field': 'type', 'message': error})
            else:
                q = q.filter_by(type=tx_type)
        if request.args.get('category_id'):
            cat_id = parse_id(request.args['category_id'])
            if cat_id is None:
                errors.append({'field': 'category_id', 'message': 'Invalid category id'})
            else:
                q = q.filter_by(category_id=cat_id)

        start, end, date_errors = date_range_args()
        errors.extend(date_errors)
        if start:
            q = q.filter(Transaction.date >= start)
        if end:
            q = q.filter(Transaction.date <= end)

        search = request.args.get('search', '').strip()
        if len(search) > 100:
            errors.append({'field': 'search', 'message': 'Search must be at most 100 characters'})
        elif search:
            q = q.filter(Transaction.description.icontains(search, autoescape=True))

        page = parse_id(request.args.get('page', 1))
        limit = parse_id(request.args.get('limit', 50))
        if page is None or page < 1:
            errors.append({'field': 'page', 'message': 'Page must be a positive integer'})
        if limit is None or not 1 <= limit <= 100:
            errors.append({'field': 'limit', 'message': 'Limit must be between 1 and 100'})
        if errors:
            return validation_failed(errors)

        total = q.count()
        txs = q.order_by(Transaction.date.desc(), Transaction.created_at.desc(), Transaction.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()
        total_pages = math.ceil(total / limit)
        return jsonify({
            'transactions': [transaction_json(t) for t in txs],
            'pagination': {
                'current_page': page,
                'total_pages': total_pages,
                'total_count': total,
                'has_next_page': page < total_pages,
                'has_prev_page': page > 1,
                'limit': limit,
            }
        })
    except Exception as e:
        logger.exception("Get transactions failed")
        return jsonify({'error': 'Failed to fetch transactions'}), 500

@app.route('/api/transactions/<int:id>')
def get_transaction(id):
    tx = db.session.get(Transaction, id)
    if not tx:
        return not_found('Transaction')
    return jsonify(transaction_json(tx))

@app.route('/api/transactions', methods=['POST'])
def create_transaction():
    try:
        data = request.get_json(silent=True) or {}
        values, errors = _validate_transaction_fields(data)
        if 'category_id' not in values and not values.get('description'):
            errors.append({'field': 'category_id', 'message': 'Category is required without a description'})
        if errors:
            return validation_failed(errors)

        # No category given: let the categorizer pick one of the user's own
        suggestion = None
        if 'category_id' in values:
            category = db.session.get(Category, values['category_id'])
            if not category:
                return jsonify({'error': 'Invalid category'}), 400
        else:
            candidates = user_categories(values['type'])
            if not candidates:
                return jsonify({'error': 'No categories found for this transaction type'}), 400
            suggestion = categorizer.categorize(values['description'], values['type'], candidates)
            category = Category.query.filter_by(name=suggestion.category).first()
            values['category_id'] = category.id

        if category.type != values['type']:
            return jsonify({'error': 'Category type must match transaction type'}), 400

        tx = Transaction(**values)
        db.session.add(tx)
        db.session.commit()
        logger.info("Created %s transaction %s in %r", tx.type, tx.id, category.name)
        body = transaction_json(tx)
        if suggestion is not None:
            body['suggestion'] = suggestion.to_dict()
        return jsonify(body), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Create transaction failed")
        return jsonify({'error': 'Failed to create transaction'}), 500

@app.route('/api/transactions/<int:id>', methods=['PUT'])
def update_transaction(id):
    try:
        tx = db.session.get(Transaction, id)
        if not tx:
            return not_found('Transaction')
        data = request.get_json(silent=True) or {}
        values, errors = _validate_transaction_fields(data, partial=True)
        if errors:
            return validation_failed(errors)

        category = db.session.get(Category, values.get('category_id', tx.category_id))
        if not category:
            return jsonify({'error': 'Invalid category'}), 400
        if category.type != values.get('type', tx.type):
            return jsonify({'error': 'Category type must match transaction type'}), 400

        for key, value in values.items():
            setattr(tx, key, value)
        db.session.commit()
        return jsonify(transaction_json(tx))
    except Exception as e:
        db.session.rollback()
        logger.exception("Update transaction failed")
        return jsonify({'error': 'Failed to update transaction'}), 500

@app.route('/api/transactions/<int:id>', methods=['DELETE'])
def delete_transaction(id):
    try:
        tx = db.session.get(Transaction, id)
        if not tx:
            return not_found('Transaction')
        db.session.delete(tx)
        db.session.commit()
        return jsonify({'message': 'Transaction deleted successfully'})
    except Exception as e:
        db.session.rollback()
        logger.exception("Delete transaction failed")
        return jsonify({'error': 'Failed to delete transaction'}), 500

@app.route('/api/transactions/stats/summary')
def transaction_summary():
    try:
        start, end, errors = date_range_args()
        if errors:
            return validation_failed(errors)

        def total(tx_type):
            q = db.session.query(func.coalesce(func.sum(Transaction.amount), 0.0)) \
                .filter(Transaction.type == tx_type)
            if start:
                q = q.filter(Transaction.date >= start)
            if end:
                q = q.filter(Transaction.date <= end)
            return float(q.scalar())

        count_q = Transaction.query
        if start:
            count_q = count_q.filter(Transaction.date >= start)
        if end:
            count_q = count_q.filter(Transaction.date <= end)

        income = total('INCOME')
        expenses = total('EXPENSE')
        return jsonify({
            'income': income,
            'expenses': expenses,
            'balance': income - expenses,
            'transaction_count': count_q.count(),
            'period': {
                'start_date': start.isoformat() if start else None,
                'end_date': end.isoformat() if end else None,
            }
        })
    except Exception as e:
        logger.exception("Get transaction stats failed")
        return jsonify({'error': 'Failed to fetch statistics'}), 500

####
# API: Budgets
####
def _validate_budget_fields(data, partial=False):
    errors = []
    values = {}
    if not partial or 'amount' in data:
        values['amount'], error = validate_amount(data.get('amount'))
        if error:
            errors.append({'field': 'amount', 'message': error})
    if not partial or 'period' in data:
        period = data.get('period')
        period = period.strip().upper() if isinstance(period, str) else None
        if period not in BUDGET_PERIODS:
            errors.append({'field': 'period', 'message': f'Period must be one of {BUDGET_PERIODS}'})
        values['period'] = period
    if not partial or 'start_date' in data:
        values['start_date'], error = validate_date(data.get('start_date'))
        if error:
            errors.append({'field': 'start_date', 'message': error})
    if data.get('end_date'):
        values['end_date'], error = validate_date(data['end_date'])
        if error:
            errors.append({'field': 'end_date', 'message': error})
    elif 'end_date' in data:
        values['end_date'] = None
    if not partial or 'category_id' in data:
        values['category_id'] = parse_id(data.get('category_id'))
        if values['category_id'] is None:
            errors.append({'field': 'category_id', 'message': 'Category is required'})
    if 'is_active' in data:
        values['is_active'] = bool(data['is_active'])
    return values, errors

def find_overlapping_budget(category_id, start, end, exclude_id=None):
    """Return an active budget for the category whose dates intersect [start, end]"""
    end = end or date.max
    q = Budget.query.filter_by(category_id=category_id, is_active=True)
    if exclude_id is not None:
        q = q.filter(Budget.id != exclude_id)
    for other in q.all():
        if other.start_date <= end and start <= (other.end_date or date.max):
            return other
    return None

def budget_utilization(budget, start=None, end=None):
    period_start = start or budget.start_date
    period_end = end or budget.end_date or date.today()
    spent = db.session.query(func.coalesce(func.sum(Transaction.amount), 0.0)).filter(
        Transaction.category_id == budget.category_id,
        Transaction.type == 'EXPENSE',
        Transaction.date >= period_start,
        Transaction.date <= period_end,
    ).scalar()
    spent = float(spent)
    return {
        'spent': spent,
        'remaining': budget.amount - spent,
        'utilization_percentage': spent / budget.amount * 100,
        'period': {'start': period_start.isoformat(), 'end': period_end.isoformat()},
    }

@app.route('/api/budgets')
def list_budgets():
    try:
        budgets = Budget.query.order_by(Budget.start_date.desc(), Budget.created_at.desc()).all()
        return jsonify([budget_json(b) for b in budgets])
    except Exception as e:
        logger.exception("Get budgets failed")
        return jsonify({'error': 'Failed to fetch budgets'}), 500

@app.route('/api/budgets/<int:id>')
def get_budget(id):
    budget = db.session.get(Budget, id)
    if not budget:
        return not_found('Budget')
    return jsonify(budget_json(budget))

@app.route('/api/budgets', methods=['POST'])
def create_budget():
    try:
        data = request.get_json(silent=True) or {}
        values, errors = _validate_budget_fields(data)
        if not errors and values.get('end_date') and values['end_date'] < values['start_date']:
            errors.append({'field': 'end_date', 'message': 'End date cannot be before start date'})
        if errors:
            return validation_failed(errors)

        if not db.session.get(Category, values['category_id']):
            return jsonify({'error': 'Invalid category'}), 400
        if find_overlapping_budget(values['category_id'], values['start_date'], values.get('end_date')):
            return jsonify({'error': 'Budget already exists for this category and period'}), 400

        budget = Budget(**values)
        db.session.add(budget)
        db.session.commit()
        logger.info("Created %s budget %s for category %s", budget.period, budget.id, budget.category_id)
        return jsonify(budget_json(budget)), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Create budget failed")
        return jsonify({'error': 'Failed to create budget'}), 500

@app.route('/api/budgets/<int:id>', methods=['PUT'])
def update_budget(id):
    try:
        budget = db.session.get(Budget, id)
        if not budget:
            return not_found('Budget')
        data = request.get_json(silent=True) or {}
        values, errors = _validate_budget_fields(data, partial=True)
        if errors:
            return validation_failed(errors)

        category_id = values.get('category_id', budget.category_id)
        start = values.get('start_date', budget.start_date)
        end = values['end_date'] if 'end_date' in values else budget.end_date
        if end and end < start:
            return validation_failed([{'field': 'end_date', 'message': 'End date cannot be before start date'}])
        if not db.session.get(Category, category_id):
            return jsonify({'error': 'Invalid category'}), 400
        if values.get('is_active', budget.is_active) and \
                find_overlapping_budget(category_id, start, end, exclude_id=id):
            return jsonify({'error': 'Budget already exists for this category and period'}), 400

        for key, value in values.items():
            setattr(budget, key, value)
        db.session.commit()
        return jsonify(budget_json(budget))
    except Exception as e:
        db.session.rollback()
        logger.exception("Update budget failed")
        return jsonify({'error': 'Failed to update budget'}), 500

@app.route('/api/budgets/<int:id>', methods=['DELETE'])
def delete_budget(id):
    try:
        budget = db.session.get(Budget, id)
        if not budget:
            return not_found('Budget')
        db.session.delete(budget)
        db.session.commit()
        return jsonify({'message': 'Budget deleted successfully'})
    except Exception as e:
        db.session.rollback()
        logger.exception("Delete budget failed")
        return jsonify({'error': 'Failed to delete budget'}), 500

@app.route('/api/budgets/<int:id>/utilization')
def get_budget_utilization(id):
    try:
        budget = db.session.get(Budget, id)
        if not budget:
            return not_found('Budget')
        start, end, errors = date_range_args()
        if errors:
            return validation_failed(errors)
        return jsonify({
            'budget': budget_json(budget),
            'utilization': budget_utilization(budget, start, end),
        })
    except Exception as e:
        logger.exception("Get budget utilization failed")
        return jsonify({'error': 'Failed to fetch budget utilization'}), 500

@app.route('/api/budgets/overview/utilization')
def budgets_overview():
    try:
        start, end, errors = date_range_args()
        if errors:
            return validation_failed(errors)
        out = []
        for budget in Budget.query.filter_by(is_active=True).order_by(Budget.start_date.desc()).all():
            item = budget_json(budget)
            item['utilization'] = budget_utilization(budget, start, end)
            out.append(item)
        return jsonify(out)
    except Exception as e:
        logger.exception("Get budgets overview failed")
        return jsonify({'error': 'Failed to fetch budgets overview'}), 500

####
# API: AI categorization
####
@app.route('/api/ai/categorize', methods=['POST'])
def categorize_transaction():
    try:
        data = request.get_json(silent=True) or {}
        errors = []
        description, error = validate_text(data.get('description'), 'Description', 1, 500)
        if error:
            errors.append({'field': 'description', 'message': error})
        tx_type, error = validate_type(data.get('type'))
        if error:
            errors.append({'field': 'type', 'message': error})
        if errors:
            return validation_failed(errors)

        candidates = user_categories(tx_type)
        if not candidates:
            return jsonify({'error': 'No categories found for this transaction type'}), 400

        result = categorizer.categorize(description, tx_type, candidates)
        body = result.to_dict()
        body.update({'description': description, 'type': tx_type})
        return jsonify(body)
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("AI categorization failed")
        return jsonify({'error': 'Failed to categorize transaction'}), 500

@app.route('/api/ai/feedback', methods=['POST'])
def submit_feedback():
    try:
        data = request.get_json(silent=True) or {}
        errors = []
        values = {}
        for field, max_len in (('original_description', 500),
                               ('suggested_category', 100),
                               ('user_selected_category', 100)):
            values[field], error = validate_text(data.get(field), field, 1, max_len)
            if error:
                errors.append({'field': field, 'message': error})
        if not isinstance(data.get('is_correct'), bool):
            errors.append({'field': 'is_correct', 'message': 'is_correct must be a boolean'})
        if errors:
            return validation_failed(errors)

        feedback = CategorizationFeedback(is_correct=data['is_correct'], **values)
        db.session.add(feedback)
        db.session.commit()
        logger.info("Recorded categorization feedback %s (correct=%s)", feedback.id, feedback.is_correct)
        return jsonify({
            'message': 'Feedback submitted successfully',
            'feedback': feedback_json(feedback),
        }), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Submit feedback failed")
        return jsonify({'error': 'Failed to submit feedback'}), 500

@app.route('/api/ai/feedback/stats')
def feedback_stats():
    try:
        total = CategorizationFeedback.query.count()
        correct = CategorizationFeedback.query.filter_by(is_correct=True).count()
        incorrect = CategorizationFeedback.query.filter_by(is_correct=False).count()
        accuracy = correct / total * 100 if total else 0

        count = func.count(CategorizationFeedback.id)
        top = db.session.query(CategorizationFeedback.suggested_category, count) \
            .filter(CategorizationFeedback.is_correct.is_(False)) \
            .group_by(CategorizationFeedback.suggested_category) \
            .order_by(count.desc(), CategorizationFeedback.suggested_category) \
            .limit(5).all()

        return jsonify({
            'total_feedback': total,
            'correct_predictions': correct,
            'incorrect_predictions': incorrect,
            'accuracy': round(accuracy, 2),
            'top_incorrect_suggestions': [{'category': name, 'count': n} for name, n in top],
        })
    except Exception as e:
        logger.exception("Get feedback stats failed")
        return jsonify({'error': 'Failed to fetch feedback statistics'}), 500

@app.route('/api/ai/feedback/recent')
def recent_feedback():
    try:
        rows = CategorizationFeedback.query.order_by(
            CategorizationFeedback.timestamp.desc(), CategorizationFeedback.id.desc()
        ).limit(20).all()
        return jsonify([feedback_json(f) for f in rows])
    except Exception as e:
        logger.exception("Get recent feedback failed")
        return jsonify({'error': 'Failed to fetch recent feedback'}), 500

@app.route('/api/ai/keywords')
def list_keywords():
    return jsonify(categorizer.dictionary.to_dict())


# Database initialization function
def init_database():
    """Seed default categories matching the keyword labels"""
    if Category.query.first() is not None:
        return
    palette = ['#ef4444', '#f59e0b', '#10b981', '#3b82f6', '#8b5cf6', '#ec4899']
    # names are unique across kinds, so the first kind to list a label keeps it
    seen = set()
    for kind in KIND_NAMES:
        for i, label in enumerate(categorizer.dictionary.labels(kind)):
            if label in seen:
                logger.warning("Skipping duplicate category %r for %s", label, kind)
                continue
            seen.add(label)
            db.session.add(Category(name=label, type=kind, color=palette[i % len(palette)]))
    for name, kind in [('Other', 'EXPENSE'), ('Other Income', 'INCOME')]:
        if name not in seen:
            seen.add(name)
            db.session.add(Category(name=name, type=kind))
    try:
        db.session.commit()
        logger.info("Default categories created")
    except Exception:
        db.session.rollback()
        logger.exception("Error creating default categories")
        raise


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
        init_database()
    logger.info("Starting finance tracker at http://localhost:5000")
    app.run(debug=os.environ.get('FINANCE_DEBUG') == '1', port=5000)
