# sekisan/routes/projects.py
from flask import Blueprint, jsonify

from sekisan.routes.common import operator_id, parse_body, unit_of_work
from sekisan.schemas.dto.project_dto import ProjectDTO
from sekisan.schemas.requests import ProjectCreateRequest

project_bp = Blueprint('projects', __name__, url_prefix='/projects')


@project_bp.route('', methods=['POST'])
def create_project():
    body = parse_body(ProjectCreateRequest)
    with unit_of_work() as services:
        project = services.projects.create_project(name=body.name, operator_id=operator_id())
        return jsonify(ProjectDTO.from_orm_model(project).model_dump(mode="json")), 201


@project_bp.route('/<project_id>', methods=['GET'])
def get_project(project_id):
    with unit_of_work() as services:
        project = services.projects.get_project(project_id)
        return jsonify(ProjectDTO.from_orm_model(project).model_dump(mode="json"))
